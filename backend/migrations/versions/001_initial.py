"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-19

Creates all database tables for the Crew Testing Platform:
- positions, ship_types, categories: reference data
- users: admins and seafarers
- questions, answers: the question bank
- tests, test_settings: test definitions and delivery options
- test_attempts: one seafarer's run through a test
- test_questions: fixed test lists and per-attempt random assignments
- user_responses: per-question results of a submitted attempt

Also creates indexes for common query patterns.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _reference_table(name: str) -> None:
    op.create_table(
        name,
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )


def upgrade() -> None:
    # ── Reference Tables ──────────────────────────────────────
    _reference_table('positions')
    _reference_table('ship_types')
    _reference_table('categories')

    # ── Users Table ───────────────────────────────────────────
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('role', sa.String(20), nullable=False, server_default='seafarer'),
        sa.Column('position_id', sa.String(36), sa.ForeignKey('positions.id'), nullable=True),
        sa.Column('ship_type_id', sa.String(36), sa.ForeignKey('ship_types.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    # ── Questions Table ───────────────────────────────────────
    op.create_table(
        'questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('type', sa.String(30), nullable=False, server_default='multiple_choice'),
        sa.Column('difficulty', sa.String(20), nullable=False, server_default='medium'),
        sa.Column('position_id', sa.String(36), sa.ForeignKey('positions.id'), nullable=True),
        sa.Column('ship_type_id', sa.String(36), sa.ForeignKey('ship_types.id'), nullable=True),
        sa.Column('category_id', sa.String(36), sa.ForeignKey('categories.id'), nullable=True),
        sa.Column('category', sa.Text(), nullable=True),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
        sa.Column('deleted_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_questions_position_id', 'questions', ['position_id'])
    op.create_index('ix_questions_ship_type_id', 'questions', ['ship_type_id'])
    op.create_index('ix_questions_category_id', 'questions', ['category_id'])
    op.create_index('ix_questions_difficulty', 'questions', ['difficulty'])

    # ── Answers Table ─────────────────────────────────────────
    op.create_table(
        'answers',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('question_id', sa.String(36),
                  sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('content', sa.Text(), nullable=False),
        sa.Column('is_correct', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('explanation', sa.Text(), nullable=True),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
    )
    op.create_index('ix_answers_question_id', 'answers', ['question_id'])

    # ── Tests Tables ──────────────────────────────────────────
    op.create_table(
        'tests',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('title', sa.Text(), nullable=False),
        sa.Column('description', sa.Text(), nullable=False, server_default=''),
        sa.Column('duration', sa.Integer(), nullable=False),
        sa.Column('passing_score', sa.Integer(), nullable=False),
        sa.Column('position_id', sa.String(36), sa.ForeignKey('positions.id'), nullable=True),
        sa.Column('ship_type_id', sa.String(36), sa.ForeignKey('ship_types.id'), nullable=True),
        sa.Column('category', sa.Text(), nullable=False, server_default=''),
        sa.Column('difficulty', sa.String(20), nullable=True),
        sa.Column('type', sa.Text(), nullable=False, server_default=''),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('is_random', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('random_questions_count', sa.Integer(), nullable=True),
        sa.Column('created_by', sa.String(36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_tests_is_active', 'tests', ['is_active'])
    op.create_index('ix_tests_position_id', 'tests', ['position_id'])
    op.create_index('ix_tests_ship_type_id', 'tests', ['ship_type_id'])

    op.create_table(
        'test_settings',
        sa.Column('test_id', sa.String(36),
                  sa.ForeignKey('tests.id', ondelete='CASCADE'), primary_key=True),
        sa.Column('shuffle_questions', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('shuffle_answers', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('allow_back', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('show_result_immediately', sa.Boolean(), nullable=False,
                  server_default=sa.true()),
        sa.Column('max_attempts', sa.Integer(), nullable=True),
    )

    # ── Attempts Table ────────────────────────────────────────
    op.create_table(
        'test_attempts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('test_id', sa.String(36), sa.ForeignKey('tests.id'), nullable=False),
        sa.Column('start_time', sa.DateTime(), nullable=False),
        sa.Column('deadline_at', sa.DateTime(), nullable=False),
        sa.Column('end_time', sa.DateTime(), nullable=True),
        sa.Column('is_completed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='IN_PROGRESS'),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('question_order', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_test_attempts_user_id', 'test_attempts', ['user_id'])
    op.create_index('ix_test_attempts_test_id', 'test_attempts', ['test_id'])
    op.create_index('ix_test_attempts_created_at', 'test_attempts', ['created_at'])

    # ── Test Questions Table ──────────────────────────────────
    # Rows with test_attempt_id NULL are a fixed test's list; the rest are
    # one attempt's random sample
    op.create_table(
        'test_questions',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('test_id', sa.String(36),
                  sa.ForeignKey('tests.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('order', sa.Integer(), nullable=False),
        sa.Column('points', sa.Float(), nullable=False, server_default='1.0'),
        sa.Column('test_attempt_id', sa.String(36),
                  sa.ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=True),
    )
    op.create_index('ix_test_questions_test_id', 'test_questions', ['test_id'])
    op.create_index('ix_test_questions_test_attempt_id', 'test_questions', ['test_attempt_id'])

    # ── User Responses Table ──────────────────────────────────
    op.create_table(
        'user_responses',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('test_attempt_id', sa.String(36),
                  sa.ForeignKey('test_attempts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', sa.String(36), sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('answer_id', sa.String(36), sa.ForeignKey('answers.id'), nullable=True),
        sa.Column('text_response', sa.Text(), nullable=True),
        sa.Column('score', sa.Float(), nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='GRADED'),
        sa.Column('is_marked', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_user_responses_test_attempt_id', 'user_responses', ['test_attempt_id'])
    op.create_index('ix_user_responses_question_id', 'user_responses', ['question_id'])


def downgrade() -> None:
    """Drop all tables in reverse dependency order."""
    op.drop_index('ix_user_responses_question_id', table_name='user_responses')
    op.drop_index('ix_user_responses_test_attempt_id', table_name='user_responses')
    op.drop_table('user_responses')
    op.drop_index('ix_test_questions_test_attempt_id', table_name='test_questions')
    op.drop_index('ix_test_questions_test_id', table_name='test_questions')
    op.drop_table('test_questions')
    op.drop_index('ix_test_attempts_created_at', table_name='test_attempts')
    op.drop_index('ix_test_attempts_test_id', table_name='test_attempts')
    op.drop_index('ix_test_attempts_user_id', table_name='test_attempts')
    op.drop_table('test_attempts')
    op.drop_table('test_settings')
    op.drop_index('ix_tests_ship_type_id', table_name='tests')
    op.drop_index('ix_tests_position_id', table_name='tests')
    op.drop_index('ix_tests_is_active', table_name='tests')
    op.drop_table('tests')
    op.drop_index('ix_answers_question_id', table_name='answers')
    op.drop_table('answers')
    op.drop_index('ix_questions_difficulty', table_name='questions')
    op.drop_index('ix_questions_category_id', table_name='questions')
    op.drop_index('ix_questions_ship_type_id', table_name='questions')
    op.drop_index('ix_questions_position_id', table_name='questions')
    op.drop_table('questions')
    op.drop_table('users')
    op.drop_table('categories')
    op.drop_table('ship_types')
    op.drop_table('positions')
