from sqlalchemy import inspect, text
from sigb.extensions import db

PENALTY_STATS_SELECT = """
    SELECT
        COUNT(*) AS total_fines_count,
        COALESCE(SUM(fine_amount), 0) AS total_fines_amount,
        COALESCE(SUM(CASE WHEN fine_paid = {true} THEN 1 ELSE 0 END), 0) AS paid_fines_count,
        COALESCE(SUM(CASE WHEN fine_paid = {true} THEN fine_amount ELSE 0 END), 0) AS paid_fines_amount,
        COALESCE(SUM(CASE WHEN fine_paid = {true} THEN 0 ELSE 1 END), 0) AS unpaid_fines_count,
        COALESCE(SUM(CASE WHEN fine_paid = {true} THEN 0 ELSE fine_amount END), 0) AS unpaid_fines_amount,
        COALESCE(AVG(fine_amount), 0) AS average_fine_amount
    FROM loans
    WHERE fine_amount > 0
"""

# dialect name -> CREATE statement prefix
VIEW_CREATE = {
    "mssql": "CREATE OR ALTER VIEW dbo.penalty_stats AS",
    "sqlite": "CREATE VIEW IF NOT EXISTS penalty_stats AS",
}
DEFAULT_VIEW_CREATE = "CREATE OR REPLACE VIEW penalty_stats AS"

def penalty_stats_view_sql(dialect_name: str) -> str:
    true_literal = "TRUE" if dialect_name == "postgresql" else "1"
    prefix = VIEW_CREATE.get(dialect_name, DEFAULT_VIEW_CREATE)
    return prefix + PENALTY_STATS_SELECT.format(true=true_literal)


def ensure_db_objects(app):
    """Creates / refreshes the penalty_stats view. Skipped until the loans table exists."""
    with app.app_context():
        if not inspect(db.engine).has_table("loans"):
            app.logger.warning("[db_objects] loans table missing, run migrations first; view skipped.")
            return False

        conn = db.engine.connect()
        trans = conn.begin()
        try:
            conn.execute(text(penalty_stats_view_sql(db.engine.dialect.name)))
            trans.commit()
            app.logger.info("[db_objects] penalty_stats view ensured.")
            return True
        except Exception as e:
            trans.rollback()
            app.logger.error(f"[db_objects] ERROR: {e}")
            raise
        finally:
            conn.close()
