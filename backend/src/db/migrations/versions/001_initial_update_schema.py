"""Initial update distribution schema

Revision ID: 001_initial_update_schema
Revises:
Create Date: 2026-10-19

Creates the update distribution tables:
- applications: distributable desktop applications (slug addressed)
- releases: builds per (channel, platform) with staged rollout settings
- release_files: binaries of a release, pointing at object storage
- api_keys: hashed keys granting access to private releases
- rollout_tracking: last rollout decision per (release, client)
- download_stats: append-only check/download events
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = '001_initial_update_schema'
down_revision = None
branch_labels = None
depends_on = None


def _uuid_column(dialect: str) -> sa.Column:
    if dialect == 'postgresql':
        return sa.Column('uuid', postgresql.UUID(as_uuid=True), nullable=False)
    # SQLite: use LargeBinary for UUID
    return sa.Column('uuid', sa.LargeBinary(16), nullable=False)


def _now(dialect: str):
    return sa.text('now()') if dialect == 'postgresql' else sa.text("(datetime('now'))")


def upgrade() -> None:
    """Create update distribution tables and indexes."""
    bind = op.get_bind()
    dialect = bind.dialect.name

    op.create_table(
        'applications',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(dialect),
        sa.Column('slug', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_applications_uuid', 'applications', ['uuid'], unique=True)
    op.create_index('ix_applications_slug', 'applications', ['slug'], unique=True)

    op.create_table(
        'releases',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(dialect),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('version', sa.String(length=100), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('channel', sa.String(length=50), nullable=False, server_default='latest'),
        sa.Column('platform', sa.String(length=50), nullable=False),
        sa.Column('staging_percentage', sa.Integer(), nullable=False, server_default='100'),
        sa.Column('is_public', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('published', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('release_date', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.ForeignKeyConstraint(['app_id'], ['applications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint(
            'app_id', 'version', 'channel', 'platform',
            name='uq_release_app_version_channel_platform'
        ),
        sa.CheckConstraint(
            'staging_percentage >= 0 AND staging_percentage <= 100',
            name='ck_release_staging_percentage'
        ),
    )
    op.create_index('ix_releases_uuid', 'releases', ['uuid'], unique=True)
    op.create_index(
        'ix_releases_lookup',
        'releases',
        ['app_id', 'channel', 'platform', 'published', 'release_date']
    )

    op.create_table(
        'release_files',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('release_id', sa.Integer(), nullable=False),
        sa.Column('filename', sa.String(length=255), nullable=False),
        sa.Column('storage_key', sa.String(length=1024), nullable=False),
        sa.Column('sha512', sa.String(length=128), nullable=False),
        sa.Column('size', sa.BigInteger(), nullable=False),
        sa.Column('arch', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.ForeignKeyConstraint(['release_id'], ['releases.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_release_files_release_id', 'release_files', ['release_id'])
    op.create_index('ix_release_files_filename', 'release_files', ['filename'])
    op.create_index('ix_release_files_storage_key', 'release_files', ['storage_key'])

    op.create_table(
        'api_keys',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        _uuid_column(dialect),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('key_hash', sa.String(length=64), nullable=False),
        sa.Column('key_prefix', sa.String(length=12), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.ForeignKeyConstraint(['app_id'], ['applications.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('key_hash'),
    )
    op.create_index('ix_api_keys_uuid', 'api_keys', ['uuid'], unique=True)
    op.create_index('ix_api_keys_app_id', 'api_keys', ['app_id'])
    op.create_index('ix_api_keys_expires_at', 'api_keys', ['expires_at'])

    op.create_table(
        'rollout_tracking',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('release_id', sa.Integer(), nullable=False),
        sa.Column('client_id', sa.String(length=255), nullable=False),
        sa.Column('eligible', sa.Boolean(), nullable=False),
        sa.Column('checked_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.ForeignKeyConstraint(['release_id'], ['releases.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('release_id', 'client_id', name='uq_rollout_release_client'),
    )

    op.create_table(
        'download_stats',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('app_id', sa.Integer(), nullable=False),
        sa.Column('release_id', sa.Integer(), nullable=False),
        sa.Column('event_type', sa.String(length=20), nullable=False),
        sa.Column('platform', sa.String(length=50), nullable=True),
        sa.Column('arch', sa.String(length=50), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=_now(dialect)),
        sa.ForeignKeyConstraint(['app_id'], ['applications.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['release_id'], ['releases.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_download_stats_release_type', 'download_stats', ['release_id', 'event_type'])
    op.create_index('ix_download_stats_app_id', 'download_stats', ['app_id'])
    op.create_index('ix_download_stats_created_at', 'download_stats', ['created_at'])


def downgrade() -> None:
    """Drop update distribution tables."""
    op.drop_index('ix_download_stats_created_at', table_name='download_stats')
    op.drop_index('ix_download_stats_app_id', table_name='download_stats')
    op.drop_index('ix_download_stats_release_type', table_name='download_stats')
    op.drop_table('download_stats')

    op.drop_table('rollout_tracking')

    op.drop_index('ix_api_keys_expires_at', table_name='api_keys')
    op.drop_index('ix_api_keys_app_id', table_name='api_keys')
    op.drop_index('ix_api_keys_uuid', table_name='api_keys')
    op.drop_table('api_keys')

    op.drop_index('ix_release_files_storage_key', table_name='release_files')
    op.drop_index('ix_release_files_filename', table_name='release_files')
    op.drop_index('ix_release_files_release_id', table_name='release_files')
    op.drop_table('release_files')

    op.drop_index('ix_releases_lookup', table_name='releases')
    op.drop_index('ix_releases_uuid', table_name='releases')
    op.drop_table('releases')

    op.drop_index('ix_applications_slug', table_name='applications')
    op.drop_index('ix_applications_uuid', table_name='applications')
    op.drop_table('applications')
