"""Card templates and audit logs

Revision ID: 001_card_templates
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = '001_card_templates'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Create TemplateType enum type (only if not exists)
    connection = op.get_bind()
    result = connection.execute(sa.text("SELECT 1 FROM pg_type WHERE typname = 'templatetype'"))
    if not result.fetchone():
        template_type_enum = postgresql.ENUM('STUDENT', 'TEACHER', 'SCHOOLADMIN', name='templatetype')
        template_type_enum.create(connection)

    op.create_table('card_templates',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('created_by', sa.String(length=36), nullable=True),
    sa.Column('updated_by', sa.String(length=36), nullable=True),
    sa.Column('deleted_at', sa.DateTime(), nullable=True),
    sa.Column('deleted_by', sa.String(length=36), nullable=True),
    sa.Column('school_id', sa.String(length=36), nullable=False),
    sa.Column('session_id', sa.String(length=36), nullable=True),
    sa.Column('class_id', sa.String(length=36), nullable=True),
    sa.Column('type', postgresql.ENUM('STUDENT', 'TEACHER', 'SCHOOLADMIN', name='templatetype', create_type=False), nullable=False),
    sa.Column('name', sa.String(length=100), nullable=False),
    sa.Column('version', sa.Integer(), nullable=False),
    sa.Column('layout_config', sa.JSON(), nullable=False),
    sa.Column('data_tags', sa.JSON(), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('school_id', 'session_id', 'class_id', 'type', 'version', name='uq_card_templates_scope_version')
    )
    op.create_index(op.f('ix_card_templates_school_id'), 'card_templates', ['school_id'], unique=False)
    op.create_index(op.f('ix_card_templates_type'), 'card_templates', ['type'], unique=False)
    op.create_index(op.f('ix_card_templates_is_active'), 'card_templates', ['is_active'], unique=False)
    op.create_index(op.f('ix_card_templates_deleted_at'), 'card_templates', ['deleted_at'], unique=False)
    op.create_index('ix_card_templates_scope', 'card_templates', ['school_id', 'session_id', 'class_id', 'type'], unique=False)

    # One active, non-deleted template per scope tuple. NULL scope parts are
    # coalesced so school and session defaults are covered too.
    op.execute(
        """
        CREATE UNIQUE INDEX uq_card_templates_active_scope
        ON card_templates (school_id, COALESCE(session_id, ''), COALESCE(class_id, ''), type)
        WHERE is_active AND deleted_at IS NULL
        """
    )

    op.create_table('audit_logs',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('action', sa.String(length=64), nullable=False),
    sa.Column('entity_type', sa.String(length=32), nullable=False),
    sa.Column('entity_id', sa.String(length=36), nullable=True),
    sa.Column('school_id', sa.String(length=36), nullable=True),
    sa.Column('performed_by', sa.String(length=36), nullable=True),
    sa.Column('role', sa.String(length=32), nullable=True),
    sa.Column('ip_address', sa.String(length=45), nullable=True),
    sa.Column('user_agent', sa.String(length=500), nullable=True),
    sa.Column('status', sa.String(length=10), nullable=False),
    sa.Column('error_message', sa.String(), nullable=True),
    sa.Column('metadata', sa.JSON(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=False),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_index(op.f('ix_audit_logs_action'), 'audit_logs', ['action'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_id'), 'audit_logs', ['entity_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_school_id'), 'audit_logs', ['school_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_created_at'), 'audit_logs', ['created_at'], unique=False)


def downgrade() -> None:
    # Drop tables
    op.drop_index(op.f('ix_audit_logs_created_at'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_school_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_entity_id'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_entity_type'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_action'), table_name='audit_logs')
    op.drop_table('audit_logs')

    op.execute("DROP INDEX IF EXISTS uq_card_templates_active_scope")
    op.drop_index('ix_card_templates_scope', table_name='card_templates')
    op.drop_index(op.f('ix_card_templates_deleted_at'), table_name='card_templates')
    op.drop_index(op.f('ix_card_templates_is_active'), table_name='card_templates')
    op.drop_index(op.f('ix_card_templates_type'), table_name='card_templates')
    op.drop_index(op.f('ix_card_templates_school_id'), table_name='card_templates')
    op.drop_table('card_templates')

    # Drop enum type
    template_type_enum = postgresql.ENUM('STUDENT', 'TEACHER', 'SCHOOLADMIN', name='templatetype')
    template_type_enum.drop(op.get_bind())
