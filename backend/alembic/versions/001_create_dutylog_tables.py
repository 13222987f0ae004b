"""Create DutyLog tables

Revision ID: 001
Revises:
Create Date: 2026-10-18

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None

AUDIT_ACTIONS = (
    'organization.create', 'organization.update',
    'user.create', 'user.update', 'user.delete', 'user.role_change',
    'invitation.create', 'invitation.accept', 'invitation.expire', 'invitation.revoke',
    'tag.create', 'tag.update', 'tag.delete',
    'event.delete', 'event.bulk_delete',
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def upgrade() -> None:
    """Create identity, tenant, event and invitation tables."""
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')

    # Create enum types
    op.execute("CREATE TYPE user_role AS ENUM ('admin', 'user')")
    op.execute("CREATE TYPE user_theme AS ENUM ('light', 'dark')")
    op.execute("CREATE TYPE event_status AS ENUM ('draft', 'submitted')")
    op.execute("CREATE TYPE invitation_status AS ENUM ('pending', 'accepted', 'expired')")
    op.execute(
        "CREATE TYPE audit_action AS ENUM ("
        + ", ".join(f"'{action}'" for action in AUDIT_ACTIONS)
        + ")"
    )

    user_role = postgresql.ENUM('admin', 'user', name='user_role', create_type=False)

    op.create_table(
        'identities',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(255), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_identities_email', 'identities', ['email'], unique=True)

    op.create_table(
        'organizations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('name', sa.String(255), nullable=False),
        *_timestamps(),
        sa.CheckConstraint('LENGTH(name) > 0', name='organization_name_not_empty')
    )

    # Profile shares the identity's primary key
    op.create_table(
        'users',
        sa.Column('id', postgresql.UUID(as_uuid=True), sa.ForeignKey('identities.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False, unique=True),
        sa.Column('full_name', sa.String(255), nullable=False),
        sa.Column('badge_no', sa.String(64), nullable=True),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('theme', postgresql.ENUM('light', 'dark', name='user_theme', create_type=False), nullable=False, server_default='light'),
        *_timestamps(),
    )
    op.create_index('ix_users_organization_id', 'users', ['organization_id'])

    op.create_table(
        'tags',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('color', sa.String(7), nullable=False, server_default='#3B82F6'),
        sa.Column('description', sa.Text, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint('organization_id', 'name', name='uq_tags_organization_name'),
    )
    op.create_index('ix_tags_organization_id', 'tags', ['organization_id'])

    op.create_table(
        'events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('officer_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('officer_name', sa.String(255), nullable=False),
        sa.Column('start_time', sa.DateTime(timezone=True), nullable=False),
        sa.Column('end_time', sa.DateTime(timezone=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=False, server_default=''),
        sa.Column('involved_parties', sa.Text, nullable=True),
        sa.Column('status', postgresql.ENUM('draft', 'submitted', name='event_status', create_type=False), nullable=False, server_default='draft'),
        *_timestamps(),
    )
    op.create_index('ix_events_organization_id', 'events', ['organization_id'])
    op.create_index('ix_events_officer_id', 'events', ['officer_id'])
    op.create_index('ix_events_organization_start_time', 'events', ['organization_id', 'start_time'])

    op.create_table(
        'event_tags',
        sa.Column('event_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('events.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('tag_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('tags.id', ondelete='CASCADE'), primary_key=True),
    )
    op.create_index('ix_event_tags_tag_id', 'event_tags', ['tag_id'])

    op.create_table(
        'invitations',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('role', user_role, nullable=False, server_default='user'),
        sa.Column('token', sa.String(128), nullable=False),
        sa.Column('status', postgresql.ENUM('pending', 'accepted', 'expired', name='invitation_status', create_type=False), nullable=False, server_default='pending'),
        sa.Column('invited_by_user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        *_timestamps(),
    )
    op.create_index('ix_invitations_organization_id', 'invitations', ['organization_id'])
    op.create_index('ix_invitations_token', 'invitations', ['token'], unique=True)
    op.create_index('ix_invitations_expires_at', 'invitations', ['expires_at'])
    # At most one pending invitation per (organization, email)
    op.create_index(
        'uq_invitations_pending_org_email',
        'invitations',
        ['organization_id', 'email'],
        unique=True,
        postgresql_where=sa.text("status = 'pending'"),
    )

    op.create_table(
        'audit_events',
        sa.Column('id', postgresql.UUID(as_uuid=True), primary_key=True, server_default=sa.text('uuid_generate_v4()')),
        sa.Column('organization_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('organizations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', postgresql.UUID(as_uuid=True), sa.ForeignKey('users.id', ondelete='SET NULL'), nullable=True),
        sa.Column('action', postgresql.ENUM(*AUDIT_ACTIONS, name='audit_action', create_type=False), nullable=False),
        sa.Column('entity_type', sa.String(50), nullable=False),
        sa.Column('entity_id', postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column('diff_json', postgresql.JSONB, nullable=True),
        sa.Column('ip_address', postgresql.INET, nullable=True),
        *_timestamps(),
    )
    op.create_index('ix_audit_events_organization_id', 'audit_events', ['organization_id'])
    op.create_index('ix_audit_events_user_id', 'audit_events', ['user_id'])
    op.create_index('ix_audit_events_entity', 'audit_events', ['entity_type', 'entity_id'])
    op.create_index('ix_audit_events_created_at', 'audit_events', ['created_at'])


def downgrade() -> None:
    """Drop DutyLog tables."""
    op.drop_table('audit_events')
    op.drop_table('invitations')
    op.drop_table('event_tags')
    op.drop_table('events')
    op.drop_table('tags')
    op.drop_table('users')
    op.drop_table('organizations')
    op.drop_table('identities')

    op.execute('DROP TYPE IF EXISTS audit_action')
    op.execute('DROP TYPE IF EXISTS invitation_status')
    op.execute('DROP TYPE IF EXISTS event_status')
    op.execute('DROP TYPE IF EXISTS user_theme')
    op.execute('DROP TYPE IF EXISTS user_role')
