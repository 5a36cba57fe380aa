"""add identifier batches and issn registry

Revision ID: 8e5f0b6c4a17
Revises: 3c1e7a9b2d40
Create Date: 2026-03-09 14:02:17.584410

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '8e5f0b6c4a17'
down_revision: Union[str, Sequence[str], None] = '3c1e7a9b2d40'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('modified_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'identifier_batch',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identifier_type', sa.String(length=4), nullable=False),
        sa.Column('identifier_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('identifier_canceled_used_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('identifier_canceled_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('identifier_deleted_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_isbn.id'), nullable=False),
        sa.Column('publication_id', sa.Integer(), sa.ForeignKey('publication_isbn.id'), nullable=True),
        sa.Column('subrange_id', sa.Integer(), nullable=False),
        sa.Column('created_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_identifier_batch_identifier_type', 'identifier_batch', ['identifier_type'])
    op.create_index('ix_identifier_batch_publisher_id', 'identifier_batch', ['publisher_id'])
    op.create_index('ix_identifier_batch_publication_id', 'identifier_batch', ['publication_id'])
    op.create_index('ix_identifier_batch_subrange_id', 'identifier_batch', ['subrange_id'])

    op.create_table(
        'identifier',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identifier', sa.String(length=20), nullable=False),
        sa.Column('subrange_id', sa.Integer(), nullable=False),
        sa.Column('identifier_batch_id', sa.Integer(), sa.ForeignKey('identifier_batch.id'), nullable=False),
        sa.Column('publication_type', sa.String(length=50), server_default='', nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('identifier', name='uq_identifier_identifier'),
    )
    op.create_index('ix_identifier_subrange_id', 'identifier', ['subrange_id'])
    op.create_index('ix_identifier_identifier_batch_id', 'identifier', ['identifier_batch_id'])

    op.create_table(
        'identifier_canceled',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('identifier', sa.String(length=20), nullable=False),
        sa.Column('identifier_type', sa.String(length=4), nullable=False),
        sa.Column('category', sa.Integer(), nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_isbn.id'), nullable=False),
        sa.Column('subrange_id', sa.Integer(), nullable=False),
        sa.Column('canceled_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('canceled_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_identifier_canceled_identifier', 'identifier_canceled', ['identifier'])
    op.create_index('ix_identifier_canceled_publisher_id', 'identifier_canceled', ['publisher_id'])
    op.create_index('ix_identifier_canceled_subrange_id', 'identifier_canceled', ['subrange_id'])

    op.create_table(
        'identifier_batch_download',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('batch_id', sa.Integer(), nullable=False),
        sa.Column('sha256sum', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_identifier_batch_download_batch_id', 'identifier_batch_download', ['batch_id'])

    op.create_table(
        'message_isbn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('recipient', sa.String(length=255), server_default='', nullable=False),
        sa.Column('subject', sa.String(length=255), server_default='', nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_isbn.id'), nullable=True),
        sa.Column('batch_id', sa.Integer(), sa.ForeignKey('identifier_batch.id'), nullable=True),
        sa.Column('sent_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_message_isbn_publisher_id', 'message_isbn', ['publisher_id'])
    op.create_index('ix_message_isbn_batch_id', 'message_isbn', ['batch_id'])

    # ISSN registry
    op.create_table(
        'issn_range',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('block', sa.String(length=4), nullable=False),
        sa.Column('range_begin', sa.String(length=10), nullable=False),
        sa.Column('range_end', sa.String(length=10), nullable=False),
        sa.Column('next', sa.String(length=10), nullable=False),
        sa.Column('free', sa.Integer(), server_default='0', nullable=False),
        sa.Column('taken', sa.Integer(), server_default='0', nullable=False),
        sa.Column('canceled', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_closed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'publisher_issn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('official_name', sa.String(length=255), server_default='', nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'issn_form',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_issn.id'), nullable=True),
        sa.Column('publication_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('publication_count_issn', sa.Integer(), server_default='0', nullable=False),
        sa.Column('status', sa.String(length=20), server_default='NOT_HANDLED', nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_issn_form_publisher_id', 'issn_form', ['publisher_id'])
    op.create_table(
        'publication_issn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_issn.id'), nullable=False),
        sa.Column('form_id', sa.Integer(), sa.ForeignKey('issn_form.id'), nullable=False),
        sa.Column('title', sa.String(length=255), server_default='', nullable=False),
        sa.Column('medium', sa.String(length=20), server_default='', nullable=False),
        sa.Column('issn', sa.String(length=9), server_default='', nullable=False),
        sa.Column('status', sa.String(length=30), server_default='NO_PREPUBLICATION_RECORD', nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_publication_issn_publisher_id', 'publication_issn', ['publisher_id'])
    op.create_index('ix_publication_issn_form_id', 'publication_issn', ['form_id'])
    op.create_table(
        'issn_used',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('issn', sa.String(length=9), nullable=False),
        sa.Column('issn_range_id', sa.Integer(), sa.ForeignKey('issn_range.id'), nullable=False),
        sa.Column('publication_id', sa.Integer(), sa.ForeignKey('publication_issn.id'), nullable=False),
        sa.Column('created_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('issn', name='uq_issn_used_issn'),
    )
    op.create_index('ix_issn_used_issn_range_id', 'issn_used', ['issn_range_id'])
    op.create_index('ix_issn_used_publication_id', 'issn_used', ['publication_id'])
    op.create_table(
        'issn_canceled',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('issn', sa.String(length=9), nullable=False),
        sa.Column('issn_range_id', sa.Integer(), sa.ForeignKey('issn_range.id'), nullable=False),
        sa.Column('canceled_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('canceled_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_issn_canceled_issn_range_id', 'issn_canceled', ['issn_range_id'])


def downgrade() -> None:
    op.drop_index('ix_issn_canceled_issn_range_id', table_name='issn_canceled')
    op.drop_table('issn_canceled')
    op.drop_index('ix_issn_used_publication_id', table_name='issn_used')
    op.drop_index('ix_issn_used_issn_range_id', table_name='issn_used')
    op.drop_table('issn_used')
    op.drop_index('ix_publication_issn_form_id', table_name='publication_issn')
    op.drop_index('ix_publication_issn_publisher_id', table_name='publication_issn')
    op.drop_table('publication_issn')
    op.drop_index('ix_issn_form_publisher_id', table_name='issn_form')
    op.drop_table('issn_form')
    op.drop_table('publisher_issn')
    op.drop_table('issn_range')

    op.drop_index('ix_message_isbn_batch_id', table_name='message_isbn')
    op.drop_index('ix_message_isbn_publisher_id', table_name='message_isbn')
    op.drop_table('message_isbn')
    op.drop_index('ix_identifier_batch_download_batch_id', table_name='identifier_batch_download')
    op.drop_table('identifier_batch_download')
    op.drop_index('ix_identifier_canceled_subrange_id', table_name='identifier_canceled')
    op.drop_index('ix_identifier_canceled_publisher_id', table_name='identifier_canceled')
    op.drop_index('ix_identifier_canceled_identifier', table_name='identifier_canceled')
    op.drop_table('identifier_canceled')
    op.drop_index('ix_identifier_identifier_batch_id', table_name='identifier')
    op.drop_index('ix_identifier_subrange_id', table_name='identifier')
    op.drop_table('identifier')
    op.drop_index('ix_identifier_batch_subrange_id', table_name='identifier_batch')
    op.drop_index('ix_identifier_batch_publication_id', table_name='identifier_batch')
    op.drop_index('ix_identifier_batch_publisher_id', table_name='identifier_batch')
    op.drop_index('ix_identifier_batch_identifier_type', table_name='identifier_batch')
    op.drop_table('identifier_batch')
