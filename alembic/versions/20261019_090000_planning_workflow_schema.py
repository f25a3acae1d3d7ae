"""planning workflow schema

Revision ID: 3f2a9c71d4e8
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3f2a9c71d4e8'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _enums():
    return (
        sa.Enum('user', 'admin', name='globalrole'),
        sa.Enum('content_planning', 'service_planning', 'ux_planning', 'developer', name='projectrole'),
        sa.Enum('private', 'pending_approval', 'official', name='documentstatus'),
        sa.Enum('requested', 'approved', 'rejected', name='approvalaction'),
    )


def upgrade() -> None:
    """Upgrade schema."""
    bind = op.get_bind()

    global_role, project_role, document_status, approval_action = _enums()
    for enum_type in (global_role, project_role, document_status, approval_action):
        enum_type.create(bind, checkfirst=True)

    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('full_name', sa.String(length=256), nullable=True),
        sa.Column('email', sa.String(length=256), nullable=False),
        sa.Column('password_hash', sa.String(length=512), nullable=False),
        sa.Column('role', global_role, nullable=False, server_default='user'),
        sa.Column('is_active', sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=256), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    op.create_table(
        'project_members',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role', project_role, nullable=False),
        sa.Column('added_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('added_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'user_id', name='unique_project_user'),
    )

    op.create_table(
        'planning_documents',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('workflow_step', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('status', document_status, nullable=False, server_default='private'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('approved_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('workflow_step BETWEEN 1 AND 9', name='ck_planning_documents_step'),
        sa.CheckConstraint(
            "(status = 'official' AND approved_by IS NOT NULL AND approved_at IS NOT NULL)"
            " OR (status != 'official' AND approved_by IS NULL AND approved_at IS NULL)",
            name='ck_planning_documents_approval',
        ),
    )
    op.create_index('ix_planning_documents_project_id', 'planning_documents', ['project_id'])

    op.create_table(
        'document_versions',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'document_id', sa.Integer(),
            sa.ForeignKey('planning_documents.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('created_by', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('document_id', 'version', name='unique_document_version'),
    )
    op.create_index('ix_document_versions_document_id', 'document_versions', ['document_id'])

    op.create_table(
        'document_approval_history',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column(
            'document_id', sa.Integer(),
            sa.ForeignKey('planning_documents.id', ondelete='CASCADE'), nullable=False,
        ),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('action', approval_action, nullable=False),
        sa.Column('previous_status', document_status, nullable=False),
        sa.Column('new_status', document_status, nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
    )
    op.create_index('ix_document_approval_history_document_id', 'document_approval_history', ['document_id'])
    op.create_index('ix_document_approval_history_user_id', 'document_approval_history', ['user_id'])

    op.create_table(
        'ai_conversations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('project_id', sa.Integer(), sa.ForeignKey('projects.id'), nullable=False),
        sa.Column('workflow_step', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('messages', sa.JSON(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint('project_id', 'workflow_step', 'user_id', name='unique_conversation_key'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    bind = op.get_bind()

    op.drop_table('ai_conversations')

    op.drop_index('ix_document_approval_history_user_id', table_name='document_approval_history')
    op.drop_index('ix_document_approval_history_document_id', table_name='document_approval_history')
    op.drop_table('document_approval_history')

    op.drop_index('ix_document_versions_document_id', table_name='document_versions')
    op.drop_table('document_versions')

    op.drop_index('ix_planning_documents_project_id', table_name='planning_documents')
    op.drop_table('planning_documents')

    op.drop_table('project_members')
    op.drop_table('projects')

    op.drop_index('ix_users_email', table_name='users')
    op.drop_table('users')

    for enum_type in reversed(_enums()):
        enum_type.drop(bind, checkfirst=True)
