"""search, taxonomy and moderation base schema

Revision ID: 3c1d5e7a9b20
Revises:
Create Date: 2026-09-28 10:12:31.408117

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3c1d5e7a9b20'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())

    if 'users' not in tables:
        op.create_table(
            'users',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('name', sa.String(length=120), nullable=False, server_default=''),
            sa.Column('email', sa.String(length=255), nullable=False),
            sa.Column('role', sa.String(length=32), nullable=False, server_default='user'),
            sa.Column('email_notifications', sa.Boolean(), nullable=False, server_default=sa.text('true')),
            sa.Column('created_at', sa.DateTime(), nullable=False),
        )
        op.create_index('ix_users_email', 'users', ['email'], unique=True)

    if 'listings' not in tables:
        op.create_table(
            'listings',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
            sa.Column('title', sa.String(length=160), nullable=False),
            sa.Column('description', sa.Text(), nullable=True),
            sa.Column('tags', sa.Text(), nullable=True),
            sa.Column('category', sa.String(length=80), nullable=True),
            sa.Column('category_slug', sa.String(length=80), nullable=True),
            sa.Column('subcategory', sa.String(length=80), nullable=True),
            sa.Column('subcategory_slug', sa.String(length=80), nullable=True),
            sa.Column('location', sa.String(length=160), nullable=True),
            sa.Column('city', sa.String(length=80), nullable=True),
            sa.Column('province', sa.String(length=80), nullable=True),
            sa.Column('price', sa.Float(), nullable=False, server_default='0'),
            sa.Column('condition', sa.String(length=32), nullable=True),
            sa.Column('status', sa.String(length=24), nullable=False, server_default='pending'),
            sa.Column('featured', sa.Boolean(), nullable=False, server_default=sa.text('false')),
            sa.Column('views_count', sa.Integer(), nullable=False, server_default='0'),
            sa.Column('moderation_note', sa.Text(), nullable=True),
            sa.Column('moderated_by', sa.Integer(), nullable=True),
            sa.Column('moderated_at', sa.DateTime(timezone=True), nullable=True),
            sa.Column('created_at', sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
            sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
        )
        for column in ('user_id', 'category', 'category_slug', 'subcategory', 'subcategory_slug', 'location', 'status'):
            op.create_index(f'ix_listings_{column}', 'listings', [column])
        op.create_index('ix_listings_status_created', 'listings', ['status', 'created_at'])

    if 'favorites' not in tables:
        op.create_table(
            'favorites',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('listing_id', sa.Integer(), sa.ForeignKey('listings.id'), nullable=False),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.UniqueConstraint('user_id', 'listing_id', name='uq_listing_favorite_user_listing'),
        )
        op.create_index('ix_favorites_user_id', 'favorites', ['user_id'])
        op.create_index('ix_favorites_listing_id', 'favorites', ['listing_id'])

    if 'notifications' not in tables:
        op.create_table(
            'notifications',
            sa.Column('id', sa.Integer(), primary_key=True),
            sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
            sa.Column('actor_id', sa.Integer(), nullable=True),
            sa.Column('type', sa.String(length=48), nullable=False, server_default='general'),
            sa.Column('title', sa.String(length=160), nullable=True),
            sa.Column('message', sa.Text(), nullable=False),
            sa.Column('link', sa.String(length=255), nullable=True),
            sa.Column('priority', sa.String(length=16), nullable=False, server_default='info'),
            sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.text('false')),
            sa.Column('created_at', sa.DateTime(), nullable=False),
            sa.Column('meta', sa.Text(), nullable=True),
        )
        op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])


def downgrade():
    bind = op.get_bind()
    insp = sa.inspect(bind)
    tables = set(insp.get_table_names())
    for table in ('notifications', 'favorites', 'listings', 'users'):
        if table in tables:
            op.drop_table(table)
