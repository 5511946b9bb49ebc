"""Create credential vault tables

Revision ID: 4f2a9c81d3e7
Revises:
Create Date: 2026-10-19 09:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '4f2a9c81d3e7'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create credentials, oauth_states and rate_limit_windows."""
    op.create_table(
        'credentials',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('service_name', sa.String(length=50), nullable=False),
        sa.Column('credential_type', sa.String(length=20), nullable=False),
        sa.Column('encrypted_tokens', postgresql.BYTEA(), nullable=True),
        sa.Column('token_nonce', postgresql.BYTEA(), nullable=True),
        sa.Column('token_expires_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('scopes', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('mirror_credential_id', sa.String(length=100), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False, server_default='connected'),
        sa.Column('version', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_credentials_tenant_id', 'credentials', ['tenant_id'])
    op.create_index(
        'ix_credentials_tenant_service', 'credentials', ['tenant_id', 'service_name'], unique=True
    )

    op.create_table(
        'oauth_states',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('state_token', sa.String(length=128), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('user_id', sa.String(length=100), nullable=False),
        sa.Column('service_name', sa.String(length=50), nullable=False),
        sa.Column('redirect_uri', sa.Text(), nullable=False),
        sa.Column('scopes', postgresql.JSONB(), nullable=False, server_default=sa.text("'[]'::jsonb")),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        # No server default: every row gets an explicit expiry from the application
        sa.Column('expires_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('state_token'),
    )
    op.create_index('ix_oauth_states_expires_at', 'oauth_states', ['expires_at'])

    op.create_table(
        'rate_limit_windows',
        sa.Column('id', sa.String(length=36), nullable=False),
        sa.Column('tenant_id', sa.String(length=100), nullable=False),
        sa.Column('window_index', sa.BigInteger(), nullable=False),
        sa.Column('request_count', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_rate_limit_tenant_window', 'rate_limit_windows', ['tenant_id', 'window_index'], unique=True
    )


def downgrade() -> None:
    """Drop credential vault tables."""
    op.drop_index('ix_rate_limit_tenant_window', table_name='rate_limit_windows')
    op.drop_table('rate_limit_windows')
    op.drop_index('ix_oauth_states_expires_at', table_name='oauth_states')
    op.drop_table('oauth_states')
    op.drop_index('ix_credentials_tenant_service', table_name='credentials')
    op.drop_index('ix_credentials_tenant_id', table_name='credentials')
    op.drop_table('credentials')
