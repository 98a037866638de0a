"""create_catalog_versioning_tables

Revision ID: a3c9e1f27b40
Revises:
Create Date: 2026-10-19 09:12:44.503118

"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a3c9e1f27b40'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('role', sa.String(length=50), nullable=False, server_default='VIEWER'),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('user_id'),
        sa.UniqueConstraint('email')
    )

    op.create_table(
        'catalogs',
        sa.Column('catalog_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('academic_year', sa.Integer(), nullable=True),
        sa.Column('catalog_type', sa.String(length=30), nullable=False, server_default='UNDERGRADUATE'),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='DRAFT'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('effective_date', sa.Date(), nullable=False),
        sa.Column('expiration_date', sa.Date(), nullable=False),
        sa.Column('based_on_catalog_id', sa.Integer(), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('archived_at', sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(['based_on_catalog_id'], ['catalogs.catalog_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.CheckConstraint('based_on_catalog_id IS NULL OR based_on_catalog_id != catalog_id',
                           name='chk_catalog_not_based_on_self'),
        sa.CheckConstraint('expiration_date >= effective_date', name='chk_catalog_validity_window'),
        sa.PrimaryKeyConstraint('catalog_id')
    )
    op.create_index(op.f('ix_catalogs_status'), 'catalogs', ['status'], unique=False)
    op.create_index(op.f('ix_catalogs_based_on_catalog_id'), 'catalogs', ['based_on_catalog_id'], unique=False)

    op.create_table(
        'catalog_versions',
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('catalog_id', sa.Integer(), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('version_type', sa.String(length=20), nullable=False, server_default='MINOR'),
        sa.Column('label', sa.String(length=200), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('change_summary', sa.Text(), nullable=True),
        sa.Column('release_notes', sa.Text(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('published_by_id', sa.Integer(), nullable=True),
        sa.Column('approval_status', sa.String(length=20), nullable=False, server_default='DRAFT'),
        sa.Column('approved_at', sa.DateTime(), nullable=True),
        sa.Column('approved_by_id', sa.Integer(), nullable=True),
        sa.Column('previous_version_id', sa.Integer(), nullable=True),
        sa.Column('created_by_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['catalog_id'], ['catalogs.catalog_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['published_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['approved_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['previous_version_id'], ['catalog_versions.version_id'], ondelete='RESTRICT'),
        sa.ForeignKeyConstraint(['created_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('catalog_id', 'version_number', name='uq_catalog_version_number'),
        sa.CheckConstraint('version_number >= 1', name='chk_version_number_positive'),
        sa.CheckConstraint('previous_version_id IS NULL OR previous_version_id != version_id',
                           name='chk_version_not_own_predecessor'),
        sa.PrimaryKeyConstraint('version_id')
    )
    op.create_index(op.f('ix_catalog_versions_catalog_id'), 'catalog_versions', ['catalog_id'], unique=False)
    op.create_index(op.f('ix_catalog_versions_approval_status'), 'catalog_versions',
                    ['approval_status'], unique=False)
    # At most one current version per catalog
    op.create_index(
        'uq_catalog_versions_current', 'catalog_versions', ['catalog_id'], unique=True,
        postgresql_where=sa.text('is_current = true'),
        sqlite_where=sa.text('is_current = 1'),
    )

    op.create_table(
        'catalog_snapshots',
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('content', sa.JSON(), nullable=False),
        sa.Column('size_bytes', sa.Integer(), nullable=False),
        sa.Column('checksum', sa.String(length=64), nullable=False),
        sa.ForeignKeyConstraint(['version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('version_id')
    )

    op.create_table(
        'version_changes',
        sa.Column('change_id', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=200), nullable=False),
        sa.Column('property_name', sa.String(length=200), nullable=True),
        sa.Column('change_type', sa.String(length=20), nullable=False),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('impact_level', sa.String(length=20), nullable=False, server_default='LOW'),
        sa.Column('requires_approval', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('changed_by_id', sa.Integer(), nullable=False),
        sa.Column('changed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['changed_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('change_id')
    )
    op.create_index(op.f('ix_version_changes_version_id'), 'version_changes', ['version_id'], unique=False)

    op.create_table(
        'version_comparisons',
        sa.Column('comparison_id', sa.Integer(), nullable=False),
        sa.Column('source_version_id', sa.Integer(), nullable=False),
        sa.Column('target_version_id', sa.Integer(), nullable=False),
        sa.Column('comparison_type', sa.String(length=20), nullable=False, server_default='DIFF'),
        sa.Column('similarity_percentage', sa.Float(), nullable=False, server_default='0'),
        sa.Column('is_cross_catalog', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('additions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('modifications_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('deletions_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('differences_summary', sa.Text(), nullable=True),
        sa.Column('comparison_metrics', sa.JSON(), nullable=False),
        sa.Column('compared_by_id', sa.Integer(), nullable=False),
        sa.Column('compared_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['source_version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['target_version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['compared_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.UniqueConstraint('source_version_id', 'target_version_id', 'comparison_type',
                            name='uq_version_comparison_triple'),
        sa.CheckConstraint('source_version_id != target_version_id', name='chk_comparison_distinct_versions'),
        sa.CheckConstraint('similarity_percentage >= 0 AND similarity_percentage <= 100',
                           name='chk_similarity_range'),
        sa.PrimaryKeyConstraint('comparison_id')
    )
    op.create_index(op.f('ix_version_comparisons_source_version_id'), 'version_comparisons',
                    ['source_version_id'], unique=False)
    op.create_index(op.f('ix_version_comparisons_target_version_id'), 'version_comparisons',
                    ['target_version_id'], unique=False)

    op.create_table(
        'comparison_details',
        sa.Column('detail_id', sa.Integer(), nullable=False),
        sa.Column('comparison_id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=200), nullable=False),
        sa.Column('property_name', sa.String(length=200), nullable=True),
        sa.Column('change_type', sa.String(length=20), nullable=False),
        sa.Column('old_value', sa.JSON(), nullable=True),
        sa.Column('new_value', sa.JSON(), nullable=True),
        sa.Column('description', sa.String(length=500), nullable=True),
        sa.Column('significance', sa.String(length=20), nullable=False, server_default='COSMETIC'),
        sa.ForeignKeyConstraint(['comparison_id'], ['version_comparisons.comparison_id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('detail_id')
    )
    op.create_index(op.f('ix_comparison_details_comparison_id'), 'comparison_details',
                    ['comparison_id'], unique=False)

    op.create_table(
        'approval_workflows',
        sa.Column('workflow_id', sa.Integer(), nullable=False),
        sa.Column('catalog_id', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=True),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('initiated_by_id', sa.Integer(), nullable=False),
        sa.Column('initiated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='NOT_STARTED'),
        sa.Column('current_stage', sa.String(length=40), nullable=True),
        sa.Column('priority', sa.String(length=20), nullable=False, server_default='NORMAL'),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('expected_completion_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=True),
        sa.Column('row_version', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['catalog_id'], ['catalogs.catalog_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['initiated_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('workflow_id')
    )
    op.create_index(op.f('ix_approval_workflows_catalog_id'), 'approval_workflows', ['catalog_id'], unique=False)
    op.create_index(op.f('ix_approval_workflows_version_id'), 'approval_workflows', ['version_id'], unique=False)
    op.create_index(op.f('ix_approval_workflows_status'), 'approval_workflows', ['status'], unique=False)

    op.create_table(
        'approval_steps',
        sa.Column('step_id', sa.Integer(), nullable=False),
        sa.Column('workflow_id', sa.Integer(), nullable=False),
        sa.Column('step_order', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=40), nullable=False),
        sa.Column('assigned_to_id', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='PENDING'),
        sa.Column('started_at', sa.DateTime(), nullable=True),
        sa.Column('completed_at', sa.DateTime(), nullable=True),
        sa.Column('due_date', sa.Date(), nullable=True),
        sa.Column('decided_by_id', sa.Integer(), nullable=True),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.Column('required_documents', sa.JSON(), nullable=False),
        sa.Column('review_criteria', sa.JSON(), nullable=False),
        sa.ForeignKeyConstraint(['workflow_id'], ['approval_workflows.workflow_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['assigned_to_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['decided_by_id'], ['users.user_id'], ondelete='SET NULL'),
        sa.UniqueConstraint('workflow_id', 'step_order', name='uq_approval_step_order'),
        sa.PrimaryKeyConstraint('step_id')
    )
    op.create_index(op.f('ix_approval_steps_workflow_id'), 'approval_steps', ['workflow_id'], unique=False)

    op.create_table(
        'catalog_approvals',
        sa.Column('approval_id', sa.Integer(), nullable=False),
        sa.Column('catalog_id', sa.Integer(), nullable=False),
        sa.Column('version_id', sa.Integer(), nullable=True),
        sa.Column('workflow_id', sa.Integer(), nullable=False),
        sa.Column('stage', sa.String(length=40), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('approved_by_id', sa.Integer(), nullable=False),
        sa.Column('approval_date', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('comments', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['catalog_id'], ['catalogs.catalog_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['version_id'], ['catalog_versions.version_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['workflow_id'], ['approval_workflows.workflow_id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['approved_by_id'], ['users.user_id'], ondelete='RESTRICT'),
        sa.PrimaryKeyConstraint('approval_id')
    )
    op.create_index(op.f('ix_catalog_approvals_catalog_id'), 'catalog_approvals', ['catalog_id'], unique=False)
    op.create_index(op.f('ix_catalog_approvals_workflow_id'), 'catalog_approvals', ['workflow_id'], unique=False)

    op.create_table(
        'audit_logs',
        sa.Column('log_id', sa.Integer(), nullable=False),
        sa.Column('entity_type', sa.String(length=50), nullable=False),
        sa.Column('entity_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('changes', sa.JSON(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.ForeignKeyConstraint(['user_id'], ['users.user_id']),
        sa.PrimaryKeyConstraint('log_id')
    )
    op.create_index(op.f('ix_audit_logs_log_id'), 'audit_logs', ['log_id'], unique=False)
    op.create_index(op.f('ix_audit_logs_entity_type'), 'audit_logs', ['entity_type'], unique=False)


def downgrade() -> None:
    op.drop_index(op.f('ix_audit_logs_entity_type'), table_name='audit_logs')
    op.drop_index(op.f('ix_audit_logs_log_id'), table_name='audit_logs')
    op.drop_table('audit_logs')
    op.drop_index(op.f('ix_catalog_approvals_workflow_id'), table_name='catalog_approvals')
    op.drop_index(op.f('ix_catalog_approvals_catalog_id'), table_name='catalog_approvals')
    op.drop_table('catalog_approvals')
    op.drop_index(op.f('ix_approval_steps_workflow_id'), table_name='approval_steps')
    op.drop_table('approval_steps')
    op.drop_index(op.f('ix_approval_workflows_status'), table_name='approval_workflows')
    op.drop_index(op.f('ix_approval_workflows_version_id'), table_name='approval_workflows')
    op.drop_index(op.f('ix_approval_workflows_catalog_id'), table_name='approval_workflows')
    op.drop_table('approval_workflows')
    op.drop_index(op.f('ix_comparison_details_comparison_id'), table_name='comparison_details')
    op.drop_table('comparison_details')
    op.drop_index(op.f('ix_version_comparisons_target_version_id'), table_name='version_comparisons')
    op.drop_index(op.f('ix_version_comparisons_source_version_id'), table_name='version_comparisons')
    op.drop_table('version_comparisons')
    op.drop_index(op.f('ix_version_changes_version_id'), table_name='version_changes')
    op.drop_table('version_changes')
    op.drop_table('catalog_snapshots')
    op.drop_index('uq_catalog_versions_current', table_name='catalog_versions')
    op.drop_index(op.f('ix_catalog_versions_approval_status'), table_name='catalog_versions')
    op.drop_index(op.f('ix_catalog_versions_catalog_id'), table_name='catalog_versions')
    op.drop_table('catalog_versions')
    op.drop_index(op.f('ix_catalogs_based_on_catalog_id'), table_name='catalogs')
    op.drop_index(op.f('ix_catalogs_status'), table_name='catalogs')
    op.drop_table('catalogs')
    op.drop_table('users')
