"""initial_schema

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'a1c3e5f70001'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps(updated: bool = True) -> list[sa.Column]:
    cols = [sa.Column('created_at', sa.TIMESTAMP(timezone=True), nullable=False)]
    if updated:
        cols.append(sa.Column('updated_at', sa.TIMESTAMP(timezone=True), nullable=False))
    return cols


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', sa.TEXT(), primary_key=True),
        sa.Column('email', sa.TEXT(), nullable=True, unique=True),
        sa.Column('first_name', sa.TEXT(), nullable=True),
        sa.Column('last_name', sa.TEXT(), nullable=True),
        sa.Column('role', sa.TEXT(), nullable=False, server_default='user'),
        sa.Column('stripe_customer_id', sa.TEXT(), nullable=True),
        sa.Column('stripe_subscription_id', sa.TEXT(), nullable=True),
        sa.Column('subscription_status', sa.TEXT(), nullable=False, server_default='none'),
        sa.Column('plan_type', sa.TEXT(), nullable=False, server_default='none'),
        sa.Column('strategy_packs_remaining', sa.INTEGER(), nullable=False, server_default='0'),
        sa.Column('has_initial_strategy_pack', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('subscription_expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("role IN ('user', 'moderator', 'admin')", name='ck_users_role'),
    )

    op.create_table(
        'applications',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), nullable=True),
        sa.Column('full_name', sa.TEXT(), nullable=False),
        sa.Column('phone', sa.TEXT(), nullable=False),
        sa.Column('email', sa.TEXT(), nullable=False),
        sa.Column('trade', sa.TEXT(), nullable=False),
        sa.Column('state', sa.TEXT(), nullable=False),
        sa.Column('issue_type', sa.TEXT(), nullable=False),
        sa.Column('amount', sa.NUMERIC(12, 2), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='pending'),
        sa.Column('workflow_stage', sa.TEXT(), nullable=False, server_default='submitted'),
        sa.Column('payment_status', sa.TEXT(), nullable=False, server_default='pending'),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
        *_timestamps(),
    )
    op.create_index('idx_applications_user', 'applications', ['user_id'])
    op.create_index('idx_applications_status', 'applications', ['status'])

    op.create_table(
        'cases',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('application_id', sa.INTEGER(), nullable=True),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('case_number', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='active'),
        sa.Column('issue_type', sa.TEXT(), nullable=False),
        sa.Column('amount', sa.TEXT(), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('client_name', sa.TEXT(), nullable=True),
        sa.Column('priority', sa.TEXT(), nullable=False, server_default='medium'),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
        sa.Column('strategy_pack', sa.JSON(), nullable=True),
        sa.Column('next_action', sa.TEXT(), nullable=True),
        sa.Column('next_action_due', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('progress', sa.INTEGER(), nullable=False, server_default='0'),
        sa.Column('mood_score', sa.INTEGER(), nullable=False, server_default='5'),
        sa.Column('stress_level', sa.TEXT(), nullable=False, server_default='medium'),
        sa.Column('urgency_feeling', sa.TEXT(), nullable=False, server_default='moderate'),
        sa.Column('confidence_level', sa.INTEGER(), nullable=False, server_default='5'),
        sa.Column('mood_notes', sa.TEXT(), nullable=True),
        sa.Column('last_mood_update', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('outcome', sa.TEXT(), nullable=True),
        sa.Column('resolution_method', sa.TEXT(), nullable=True),
        sa.Column('amount_recovered', sa.NUMERIC(12, 2), nullable=True),
        sa.Column('client_satisfaction_score', sa.INTEGER(), nullable=True),
        sa.Column('outcome_notes', sa.TEXT(), nullable=True),
        sa.Column('resolved_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('case_number', name='uq_cases_case_number'),
    )
    op.create_index('idx_cases_user', 'cases', ['user_id'])

    op.create_table(
        'contracts',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('contract_number', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='draft'),
        sa.Column('client_name', sa.TEXT(), nullable=False),
        sa.Column('project_description', sa.TEXT(), nullable=False),
        sa.Column('value', sa.NUMERIC(12, 2), nullable=True),
        sa.Column('start_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('end_date', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('terms', sa.JSON(), nullable=True),
        sa.Column('ai_analysis', sa.JSON(), nullable=True),
        sa.Column('next_action', sa.TEXT(), nullable=True),
        sa.Column('next_action_due', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('version', sa.INTEGER(), nullable=False, server_default='1'),
        *_timestamps(),
        sa.UniqueConstraint('contract_number', name='uq_contracts_contract_number'),
    )
    op.create_index('idx_contracts_user', 'contracts', ['user_id'])

    op.create_table(
        'documents',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('case_id', sa.INTEGER(), sa.ForeignKey('cases.id', ondelete='SET NULL'), nullable=True),
        sa.Column('contract_id', sa.INTEGER(), sa.ForeignKey('contracts.id', ondelete='SET NULL'), nullable=True),
        sa.Column('filename', sa.TEXT(), nullable=False),
        sa.Column('original_name', sa.TEXT(), nullable=False),
        sa.Column('file_type', sa.TEXT(), nullable=False),
        sa.Column('mime_type', sa.TEXT(), nullable=False),
        sa.Column('file_size', sa.INTEGER(), nullable=False),
        sa.Column('upload_path', sa.TEXT(), nullable=False),
        sa.Column('category', sa.TEXT(), nullable=True),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('tags', sa.JSON(), nullable=True),
        sa.Column('version', sa.INTEGER(), nullable=False, server_default='1'),
        *_timestamps(updated=False),
    )
    op.create_index('idx_documents_user', 'documents', ['user_id'])
    op.create_index('idx_documents_case', 'documents', ['case_id'])
    op.create_index('idx_documents_contract', 'documents', ['contract_id'])

    op.create_table(
        'timeline_events',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('case_id', sa.INTEGER(), sa.ForeignKey('cases.id', ondelete='CASCADE'), nullable=True),
        sa.Column('contract_id', sa.INTEGER(), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=True),
        sa.Column('event_type', sa.TEXT(), nullable=False),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('event_date', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('is_completed', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        *_timestamps(updated=False),
    )
    op.create_index('idx_timeline_case', 'timeline_events', ['case_id'])
    op.create_index('idx_timeline_contract', 'timeline_events', ['contract_id'])

    op.create_table(
        'calendar_integrations',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('provider', sa.TEXT(), nullable=False),
        sa.Column('access_token', sa.TEXT(), nullable=False),
        sa.Column('refresh_token', sa.TEXT(), nullable=True),
        sa.Column('token_expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('calendar_id', sa.TEXT(), nullable=True),
        sa.Column('is_active', sa.BOOLEAN(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index('idx_calendar_integrations_user', 'calendar_integrations', ['user_id'])

    op.create_table(
        'calendar_events',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('case_id', sa.INTEGER(), sa.ForeignKey('cases.id', ondelete='SET NULL'), nullable=True),
        sa.Column('contract_id', sa.INTEGER(), sa.ForeignKey('contracts.id', ondelete='SET NULL'), nullable=True),
        sa.Column(
            'integration_id',
            sa.INTEGER(),
            sa.ForeignKey('calendar_integrations.id', ondelete='SET NULL'),
            nullable=True,
        ),
        sa.Column('external_event_id', sa.TEXT(), nullable=True),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('start_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('end_time', sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column('location', sa.TEXT(), nullable=True),
        sa.Column('attendees', sa.JSON(), nullable=True),
        sa.Column('reminder_minutes', sa.INTEGER(), nullable=False, server_default='15'),
        sa.Column('is_synced', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('sync_status', sa.TEXT(), nullable=False, server_default='pending'),
        *_timestamps(),
    )
    op.create_index('idx_calendar_events_user_start', 'calendar_events', ['user_id', 'start_time'])

    op.create_table(
        'notifications',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.TEXT(), nullable=False),
        sa.Column('type', sa.TEXT(), nullable=False),
        sa.Column('title', sa.TEXT(), nullable=False),
        sa.Column('message', sa.TEXT(), nullable=False),
        sa.Column('priority', sa.TEXT(), nullable=False, server_default='medium'),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='unread'),
        sa.Column('category', sa.TEXT(), nullable=True),
        sa.Column('action_url', sa.TEXT(), nullable=True),
        sa.Column('action_label', sa.TEXT(), nullable=True),
        sa.Column('related_id', sa.INTEGER(), nullable=True),
        sa.Column('related_type', sa.TEXT(), nullable=True),
        sa.Column('metadata', sa.JSON(), nullable=True),
        sa.Column('expires_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('read_at', sa.TIMESTAMP(timezone=True), nullable=True),
        sa.Column('archived_at', sa.TIMESTAMP(timezone=True), nullable=True),
        *_timestamps(updated=False),
    )
    op.create_index('idx_notifications_user_status', 'notifications', ['user_id', 'status'])

    op.create_table(
        'document_tags',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.TEXT(), nullable=False),
        sa.Column('color', sa.TEXT(), nullable=False, server_default='#3B82F6'),
        sa.Column('category', sa.TEXT(), nullable=False),
        sa.Column('description', sa.TEXT(), nullable=True),
        sa.Column('is_system', sa.BOOLEAN(), nullable=False, server_default=sa.false()),
        sa.Column('usage_count', sa.INTEGER(), nullable=False, server_default='0'),
        sa.Column('created_by', sa.TEXT(), nullable=True),
        *_timestamps(updated=False),
        sa.UniqueConstraint('name', name='uq_document_tags_name'),
    )

    op.create_table(
        'document_tag_assignments',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('document_id', sa.INTEGER(), sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('tag_id', sa.INTEGER(), sa.ForeignKey('document_tags.id', ondelete='CASCADE'), nullable=False),
        sa.Column('assigned_by', sa.TEXT(), nullable=False),
        sa.Column('confidence', sa.FLOAT(), nullable=False, server_default='1.0'),
        *_timestamps(updated=False),
        sa.UniqueConstraint('document_id', 'tag_id', name='uq_tag_assignment_document_tag'),
    )

    op.create_table(
        'ai_tag_suggestions',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('document_id', sa.INTEGER(), sa.ForeignKey('documents.id', ondelete='CASCADE'), nullable=False),
        sa.Column('suggested_tags', sa.JSON(), nullable=False),
        sa.Column('document_analysis', sa.TEXT(), nullable=True),
        sa.Column('processing_status', sa.TEXT(), nullable=False, server_default='completed'),
        sa.Column('processed_at', sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index('idx_ai_tag_suggestions_document', 'ai_tag_suggestions', ['document_id'])

    op.create_table(
        'stripe_webhook_events',
        sa.Column('id', sa.INTEGER(), primary_key=True, autoincrement=True),
        sa.Column('event_id', sa.TEXT(), nullable=False),
        sa.Column('event_type', sa.TEXT(), nullable=False),
        sa.Column('status', sa.TEXT(), nullable=False, server_default='processing'),
        *_timestamps(),
        sa.UniqueConstraint('event_id', name='uq_stripe_webhook_events_event_id'),
    )


def downgrade() -> None:
    op.drop_table('stripe_webhook_events')
    op.drop_index('idx_ai_tag_suggestions_document', table_name='ai_tag_suggestions')
    op.drop_table('ai_tag_suggestions')
    op.drop_table('document_tag_assignments')
    op.drop_table('document_tags')
    op.drop_index('idx_notifications_user_status', table_name='notifications')
    op.drop_table('notifications')
    op.drop_index('idx_calendar_events_user_start', table_name='calendar_events')
    op.drop_table('calendar_events')
    op.drop_index('idx_calendar_integrations_user', table_name='calendar_integrations')
    op.drop_table('calendar_integrations')
    op.drop_index('idx_timeline_contract', table_name='timeline_events')
    op.drop_index('idx_timeline_case', table_name='timeline_events')
    op.drop_table('timeline_events')
    op.drop_index('idx_documents_contract', table_name='documents')
    op.drop_index('idx_documents_case', table_name='documents')
    op.drop_index('idx_documents_user', table_name='documents')
    op.drop_table('documents')
    op.drop_index('idx_contracts_user', table_name='contracts')
    op.drop_table('contracts')
    op.drop_index('idx_cases_user', table_name='cases')
    op.drop_table('cases')
    op.drop_index('idx_applications_status', table_name='applications')
    op.drop_index('idx_applications_user', table_name='applications')
    op.drop_table('applications')
    op.drop_table('users')
