"""Create tables read and written by the lifestyle similarity and transition engines

Revision ID: 001_lifestyle_engine
Revises:
Create Date: 2026-10-18

"""
import sqlalchemy as sa
from sqlalchemy import inspect

from alembic import op

# revision identifiers, used by Alembic.
revision = '001_lifestyle_engine'
down_revision = None
branch_labels = None
depends_on = None


def table_exists(table_name: str) -> bool:
    """Check if a table exists in the database (the hosted backend may own some)."""
    bind = op.get_bind()
    inspector = inspect(bind)
    return table_name in inspector.get_table_names()


def _id() -> sa.Column:
    return sa.Column('id', sa.String(36), primary_key=True)


def _created_at() -> sa.Column:
    return sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now())


def upgrade() -> None:
    if not table_exists('profiles'):
        op.create_table(
            'profiles',
            _id(),
            sa.Column('username', sa.String(50), nullable=True, unique=True),
            _created_at(),
        )

    if not table_exists('entities'):
        op.create_table(
            'entities',
            _id(),
            sa.Column('name', sa.String(255), nullable=False),
            sa.Column('type', sa.String(50), nullable=False, server_default='others'),
            sa.Column('image_url', sa.String(1024), nullable=True),
            _created_at(),
        )
        op.create_index('ix_entities_type', 'entities', ['type'])

    if not table_exists('user_stuff'):
        op.create_table(
            'user_stuff',
            _id(),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('entity_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('status', sa.String(50), nullable=False),
            sa.Column('sentiment_score', sa.Integer(), nullable=True),
            sa.Column('category', sa.String(100), nullable=True),
            _created_at(),
            sa.UniqueConstraint('user_id', 'entity_id', name='unique_user_stuff_entity'),
        )
        op.create_index('ix_user_stuff_user_id', 'user_stuff', ['user_id'])
        op.create_index('ix_user_stuff_entity_id', 'user_stuff', ['entity_id'])

    if not table_exists('user_routines'):
        op.create_table(
            'user_routines',
            _id(),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('category', sa.String(100), nullable=False),
            sa.Column('frequency', sa.String(50), nullable=True),
            sa.Column('steps', sa.JSON(), nullable=True),
            _created_at(),
        )
        op.create_index('ix_user_routines_user_id', 'user_routines', ['user_id'])

    if not table_exists('reviews'):
        op.create_table(
            'reviews',
            _id(),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('entity_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('rating', sa.Integer(), nullable=True),
            sa.Column('category', sa.String(100), nullable=True),
            _created_at(),
        )
        op.create_index('ix_reviews_user_id', 'reviews', ['user_id'])
        op.create_index('ix_reviews_entity_id', 'reviews', ['entity_id'])

    if not table_exists('user_entity_journeys'):
        op.create_table(
            'user_entity_journeys',
            _id(),
            sa.Column('user_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('from_entity_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('to_entity_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('transition_type', sa.String(20), nullable=False),
            sa.Column('from_sentiment', sa.Integer(), nullable=True),
            sa.Column('to_sentiment', sa.Integer(), nullable=True),
            sa.Column('confidence', sa.Float(), nullable=True),
            sa.Column('evidence_text', sa.Text(), nullable=True),
            sa.Column('category', sa.String(100), nullable=True),
            _created_at(),
        )
        op.create_index('ix_user_entity_journeys_user_id', 'user_entity_journeys', ['user_id'])
        op.create_index('ix_user_entity_journeys_from_entity_id', 'user_entity_journeys', ['from_entity_id'])
        op.create_index('ix_user_entity_journeys_to_entity_id', 'user_entity_journeys', ['to_entity_id'])
        op.create_index('ix_user_entity_journeys_transition_type', 'user_entity_journeys', ['transition_type'])
        op.create_index('ix_user_entity_journeys_created_at', 'user_entity_journeys', ['created_at'])

    if not table_exists('product_relationships'):
        op.create_table(
            'product_relationships',
            _id(),
            sa.Column('entity_a_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('entity_b_id', sa.String(36), sa.ForeignKey('entities.id'), nullable=False),
            sa.Column('relationship_type', sa.String(20), nullable=False),
            sa.Column('consensus_count', sa.Integer(), nullable=False, server_default='1'),
            sa.Column('avg_confidence', sa.Float(), nullable=True),
            sa.Column('evidence_text', sa.Text(), nullable=True),
            _created_at(),
            sa.Column('last_confirmed_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint('entity_a_id', 'entity_b_id', 'relationship_type', name='uq_product_relationship'),
        )
        op.create_index('ix_product_relationships_entity_a_id', 'product_relationships', ['entity_a_id'])
        op.create_index('ix_product_relationships_entity_b_id', 'product_relationships', ['entity_b_id'])
        op.create_index('ix_product_relationships_relationship_type', 'product_relationships', ['relationship_type'])
        op.create_index('ix_product_relationships_consensus_count', 'product_relationships', ['consensus_count'])

    if not table_exists('user_similarities'):
        op.create_table(
            'user_similarities',
            _id(),
            sa.Column('user_a_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('user_b_id', sa.String(36), sa.ForeignKey('profiles.id'), nullable=False),
            sa.Column('similarity_type', sa.String(20), nullable=False, server_default='lifestyle'),
            sa.Column('similarity_score', sa.Float(), nullable=False, server_default='0.0'),
            sa.Column('overall_score', sa.Float(), nullable=False, server_default='0.0'),
            sa.Column('lifestyle_score', sa.Float(), nullable=False, server_default='0.0'),
            sa.Column('category_overlap', sa.Float(), nullable=False, server_default='0.0'),
            sa.Column('journey_alignment', sa.Float(), nullable=False, server_default='0.0'),
            sa.Column('stuff_overlap', sa.JSON(), nullable=True),
            sa.Column('routines_similarity', sa.JSON(), nullable=True),
            sa.Column('calculation_metadata', sa.JSON(), nullable=True),
            sa.Column('last_calculated', sa.DateTime(), nullable=False, server_default=sa.func.now()),
            sa.UniqueConstraint('user_a_id', 'user_b_id', 'similarity_type', name='unique_user_pair_similarity'),
        )
        op.create_index('ix_user_similarities_user_a_id', 'user_similarities', ['user_a_id'])
        op.create_index('ix_user_similarities_user_b_id', 'user_similarities', ['user_b_id'])
        op.create_index('ix_user_similarities_overall_score', 'user_similarities', ['overall_score'])


def downgrade() -> None:
    for table in (
        'user_similarities',
        'product_relationships',
        'user_entity_journeys',
        'reviews',
        'user_routines',
        'user_stuff',
        'entities',
        'profiles',
    ):
        if table_exists(table):
            op.drop_table(table)
