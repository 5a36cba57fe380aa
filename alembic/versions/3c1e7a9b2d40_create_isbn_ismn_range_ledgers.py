"""create isbn ismn range ledgers

Revision ID: 3c1e7a9b2d40
Revises:
Create Date: 2026-03-02 09:14:51.203118

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '3c1e7a9b2d40'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _audit_columns() -> list:
    return [
        sa.Column('created_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.text('now()'), nullable=False),
        sa.Column('created_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
        sa.Column('modified_by', sa.String(length=255), server_default=sa.text("'system@local'"), nullable=False),
    ]


def _counter_columns() -> list:
    return [
        sa.Column('range_begin', sa.String(length=10), nullable=False),
        sa.Column('range_end', sa.String(length=10), nullable=False),
        sa.Column('next', sa.String(length=10), nullable=False),
        sa.Column('free', sa.Integer(), server_default='0', nullable=False),
        sa.Column('taken', sa.Integer(), server_default='0', nullable=False),
        sa.Column('canceled', sa.Integer(), server_default='0', nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('is_closed', sa.Boolean(), server_default=sa.text('false'), nullable=False),
    ]


def upgrade() -> None:
    op.create_table(
        'publisher_isbn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('official_name', sa.String(length=255), server_default='', nullable=False),
        sa.Column('has_quitted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('active_identifier_isbn', sa.String(length=20), server_default='', nullable=False),
        sa.Column('active_identifier_ismn', sa.String(length=20), server_default='', nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )

    op.create_table(
        'publication_isbn',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_isbn.id'), nullable=True),
        sa.Column('title', sa.String(length=255), server_default='', nullable=False),
        sa.Column('publication_type', sa.String(length=20), server_default='BOOK', nullable=False),
        sa.Column('publication_format', sa.String(length=20), server_default='', nullable=False),
        sa.Column('type', sa.String(length=255), server_default='', nullable=False),
        sa.Column('fileformat', sa.String(length=255), server_default='', nullable=False),
        sa.Column('publication_identifier_print', sa.Text(), server_default='', nullable=False),
        sa.Column('publication_identifier_electronical', sa.Text(), server_default='', nullable=False),
        sa.Column('publication_identifier_type', sa.String(length=4), server_default='', nullable=False),
        sa.Column('on_process', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('no_identifier_granted', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        sa.Column('publications_public', sa.Boolean(), server_default=sa.text('true'), nullable=False),
        sa.Column('publications_intra', sa.Boolean(), server_default=sa.text('false'), nullable=False),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_publication_isbn_publisher_id', 'publication_isbn', ['publisher_id'])

    op.create_table(
        'isbn_range',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prefix', sa.Integer(), nullable=False),
        sa.Column('lang_group', sa.Integer(), nullable=False),
        sa.Column('category', sa.Integer(), nullable=False),
        *_counter_columns(),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_table(
        'ismn_range',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('prefix', sa.String(length=10), server_default='979-0', nullable=False),
        sa.Column('category', sa.Integer(), nullable=False),
        *_counter_columns(),
        *_audit_columns(),
        sa.PrimaryKeyConstraint('id'),
    )

    for kind in ('isbn', 'ismn'):
        op.create_table(
            f'{kind}_sub_range',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('publisher_id', sa.Integer(), sa.ForeignKey('publisher_isbn.id'), nullable=False),
            sa.Column('range_id', sa.Integer(), sa.ForeignKey(f'{kind}_range.id'), nullable=False),
            sa.Column('publisher_identifier', sa.String(length=20), nullable=False),
            sa.Column('category', sa.Integer(), nullable=False),
            sa.Column('deleted', sa.Integer(), server_default='0', nullable=False),
            *_counter_columns(),
            *_audit_columns(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(f'ix_{kind}_sub_range_publisher_id', f'{kind}_sub_range', ['publisher_id'])
        op.create_index(f'ix_{kind}_sub_range_range_id', f'{kind}_sub_range', ['range_id'])
        op.create_index(
            f'ix_{kind}_sub_range_publisher_identifier', f'{kind}_sub_range', ['publisher_identifier']
        )

        op.create_table(
            f'{kind}_sub_range_canceled',
            sa.Column('id', sa.Integer(), nullable=False),
            sa.Column('identifier', sa.String(length=20), nullable=False),
            sa.Column('range_id', sa.Integer(), sa.ForeignKey(f'{kind}_range.id'), nullable=False),
            sa.Column('category', sa.Integer(), nullable=False),
            *_audit_columns(),
            sa.PrimaryKeyConstraint('id'),
        )
        op.create_index(
            f'ix_{kind}_sub_range_canceled_range_id', f'{kind}_sub_range_canceled', ['range_id']
        )


def downgrade() -> None:
    for kind in ('ismn', 'isbn'):
        op.drop_index(f'ix_{kind}_sub_range_canceled_range_id', table_name=f'{kind}_sub_range_canceled')
        op.drop_table(f'{kind}_sub_range_canceled')
        op.drop_index(f'ix_{kind}_sub_range_publisher_identifier', table_name=f'{kind}_sub_range')
        op.drop_index(f'ix_{kind}_sub_range_range_id', table_name=f'{kind}_sub_range')
        op.drop_index(f'ix_{kind}_sub_range_publisher_id', table_name=f'{kind}_sub_range')
        op.drop_table(f'{kind}_sub_range')
    op.drop_table('ismn_range')
    op.drop_table('isbn_range')
    op.drop_index('ix_publication_isbn_publisher_id', table_name='publication_isbn')
    op.drop_table('publication_isbn')
    op.drop_table('publisher_isbn')
