"""enrollment and lesson progress unique keys; enrollment source and order id

Revision ID: c1a2b3d4e5f6
Revises:
Create Date: 2026-10-12 09:30:00.000000
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = 'c1a2b3d4e5f6'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Keep the oldest row of each duplicate pair before the keys go on.
    op.execute(
        """
        DELETE FROM enrollments a USING enrollments b
        WHERE a.user_id = b.user_id AND a.course_id = b.course_id
          AND (a.enrolled_at, a.id::text) > (b.enrolled_at, b.id::text)
        """
    )
    op.execute(
        """
        DELETE FROM lesson_progress a USING lesson_progress b
        WHERE a.user_id = b.user_id AND a.lesson_id = b.lesson_id
          AND a.id::text > b.id::text
        """
    )
    with op.batch_alter_table('enrollments') as batch_op:
        batch_op.add_column(sa.Column('source', sa.String(length=16), nullable=True))
        batch_op.add_column(sa.Column('order_id', sa.String(length=64), nullable=True))
        batch_op.create_unique_constraint('uq_enrollments_user_course', ['user_id', 'course_id'])
    with op.batch_alter_table('lesson_progress') as batch_op:
        batch_op.create_unique_constraint('uq_lesson_progress_user_lesson', ['user_id', 'lesson_id'])


def downgrade() -> None:
    with op.batch_alter_table('lesson_progress') as batch_op:
        batch_op.drop_constraint('uq_lesson_progress_user_lesson', type_='unique')
    with op.batch_alter_table('enrollments') as batch_op:
        batch_op.drop_constraint('uq_enrollments_user_course', type_='unique')
        batch_op.drop_column('order_id')
        batch_op.drop_column('source')
