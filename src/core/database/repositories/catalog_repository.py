"""
Catalog repository for grades and units
"""

import logging

from ..connection import DatabaseConnection
from ..models import Grade, Unit

logger = logging.getLogger(__name__)


class CatalogRepository:
    """Repository for the grade → unit hierarchy"""

    def __init__(self, db_connection: DatabaseConnection):
        self.db_connection = db_connection

    # Grades
    def create_grade(self, name: str, sort_order: int = 0) -> Grade | None:
        """Create a new grade"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO grades (name, sort_order) VALUES (?, ?)",
                    (name, sort_order),
                )
                grade_id = cursor.lastrowid
                conn.commit()
                return self.get_grade(grade_id)
        except Exception as e:
            logger.error(f"Error creating grade: {e}")
            return None

    def get_grade(self, grade_id: int) -> Grade | None:
        """Get grade by ID"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM grades WHERE id = ?", (grade_id,))
                row = cursor.fetchone()
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Error getting grade: {e}")
            return None

    def get_grades(self) -> list[Grade]:
        """Get all grades in display order"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM grades ORDER BY sort_order, id")
                return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error getting grades: {e}")
            return []

    def update_grade(
        self, grade_id: int, name: str | None = None, sort_order: int | None = None
    ) -> bool:
        """Rename or reorder a grade"""
        return self._update("grades", grade_id, name, sort_order)

    def delete_grade(self, grade_id: int) -> bool:
        """Delete a grade together with its units and words"""
        return self._delete("grades", grade_id)

    # Units
    def create_unit(self, grade_id: int, name: str, sort_order: int = 0) -> Unit | None:
        """Create a new unit inside a grade"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    "INSERT INTO units (grade_id, name, sort_order) VALUES (?, ?, ?)",
                    (grade_id, name, sort_order),
                )
                unit_id = cursor.lastrowid
                conn.commit()
                return self.get_unit(unit_id)
        except Exception as e:
            logger.error(f"Error creating unit: {e}")
            return None

    def get_unit(self, unit_id: int) -> Unit | None:
        """Get unit by ID"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute("SELECT * FROM units WHERE id = ?", (unit_id,))
                row = cursor.fetchone()
                return dict(row) if row else None
        except Exception as e:
            logger.error(f"Error getting unit: {e}")
            return None

    def get_units_by_grade(self, grade_id: int) -> list[dict]:
        """Get units of a grade with their word counts"""
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    """
                    SELECT u.*, COUNT(w.id) as word_count
                    FROM units u
                    LEFT JOIN words w ON w.unit_id = u.id
                    WHERE u.grade_id = ?
                    GROUP BY u.id
                    ORDER BY u.sort_order, u.id
                    """,
                    (grade_id,),
                )
                return [dict(row) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Error getting units by grade: {e}")
            return []

    def update_unit(
        self, unit_id: int, name: str | None = None, sort_order: int | None = None
    ) -> bool:
        """Rename or reorder a unit"""
        return self._update("units", unit_id, name, sort_order)

    def delete_unit(self, unit_id: int) -> bool:
        """Delete a unit together with its words"""
        return self._delete("units", unit_id)

    def _update(
        self, table: str, row_id: int, name: str | None, sort_order: int | None
    ) -> bool:
        try:
            with self.db_connection.get_connection() as conn:
                updates = []
                params: list = []

                if name is not None:
                    updates.append("name = ?")
                    params.append(name)

                if sort_order is not None:
                    updates.append("sort_order = ?")
                    params.append(sort_order)

                if not updates:
                    return False

                params.append(row_id)
                cursor = conn.execute(
                    f"UPDATE {table} SET {', '.join(updates)} WHERE id = ?",  # noqa: S608
                    params,
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error updating {table} row {row_id}: {e}")
            return False

    def _delete(self, table: str, row_id: int) -> bool:
        try:
            with self.db_connection.get_connection() as conn:
                cursor = conn.execute(
                    f"DELETE FROM {table} WHERE id = ?",  # noqa: S608
                    (row_id,),
                )
                conn.commit()
                return cursor.rowcount > 0
        except Exception as e:
            logger.error(f"Error deleting {table} row {row_id}: {e}")
            return False
