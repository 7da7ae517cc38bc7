"""initial grading schema

Revision ID: initial_grading_20261018
Revises: 
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision = 'initial_grading_20261018'
down_revision = None
branch_labels = None
depends_on = None

UUID = postgresql.UUID(as_uuid=True)


def upgrade() -> None:
    op.create_table(
        'users',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('first_name', sa.String(), nullable=False),
        sa.Column('last_name', sa.String(), nullable=False),
        sa.Column('email', sa.String(), nullable=False),
        sa.Column('role', sa.Enum('student', 'teacher', 'admin', name='role'), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'activities',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'questions',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('title', sa.String(), nullable=False),
        sa.Column('body_html', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
    )

    op.create_table(
        'activity_elements',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('activity_id', UUID, sa.ForeignKey('activities.id', ondelete='CASCADE'), nullable=False),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id'), nullable=True),
        sa.Column('element_type', sa.String(), nullable=False),
        sa.Column('status', sa.Enum('active', 'archived', name='elementstatus'), nullable=False),
        sa.Column('order_index', sa.Integer(), nullable=False),
    )
    op.create_index('ix_activity_elements_activity_id', 'activity_elements', ['activity_id'])

    op.create_table(
        'question_scoring',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('rubric_id', UUID, nullable=True),
        sa.Column('scoring_type', sa.Enum('auto', 'manual', 'hybrid', name='scoringtype'), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=True),
        sa.Column('expected_answers', sa.JSON(), nullable=True),
        sa.Column('auto_grade_config', sa.JSON(), nullable=True),
        sa.Column('field_scores', sa.JSON(), nullable=True),
        sa.Column('answer_kinds', sa.JSON(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_question_scoring_rubric_id', 'question_scoring', ['rubric_id'])

    op.create_table(
        'user_activity_submissions',
        sa.Column('id', UUID, primary_key=True),
        sa.Column('user_id', UUID, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('activity_id', UUID, sa.ForeignKey('activities.id'), nullable=False),
        sa.Column(
            'status',
            sa.Enum('in-progress', 'submitted', 'graded', 'archived', name='submissionstatus'),
            nullable=False,
        ),
        sa.Column('submitted_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('total_score', sa.Float(), nullable=True),
        sa.Column('max_possible_score', sa.Float(), nullable=True),
        sa.Column('percentage', sa.Float(), nullable=True),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('graded_by', sa.String(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index('ix_user_activity_submissions_user_id', 'user_activity_submissions', ['user_id'])
    op.create_index('ix_user_activity_submissions_activity_id', 'user_activity_submissions', ['activity_id'])
    op.create_index('ix_user_activity_submissions_status', 'user_activity_submissions', ['status'])

    op.create_table(
        'user_activity_submission_answers',
        sa.Column('id', UUID, primary_key=True),
        sa.Column(
            'submission_id',
            UUID,
            sa.ForeignKey('user_activity_submissions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('element_uuid', UUID, nullable=True),
        sa.Column('answer_data', sa.JSON(), nullable=False),
        sa.Column(
            'status',
            sa.Enum('in-progress', 'submitted', 'archived', name='answerstatus'),
            nullable=False,
        ),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        'ix_user_activity_submission_answers_submission_id',
        'user_activity_submission_answers',
        ['submission_id'],
    )
    op.create_index(
        'ix_user_activity_submission_answers_question_id',
        'user_activity_submission_answers',
        ['question_id'],
    )

    op.create_table(
        'question_scores',
        sa.Column('id', UUID, primary_key=True),
        sa.Column(
            'answer_id',
            UUID,
            sa.ForeignKey('user_activity_submission_answers.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column(
            'submission_id',
            UUID,
            sa.ForeignKey('user_activity_submissions.id', ondelete='CASCADE'),
            nullable=False,
        ),
        sa.Column('question_id', UUID, sa.ForeignKey('questions.id'), nullable=False),
        sa.Column('score', sa.Float(), nullable=False),
        sa.Column('max_score', sa.Float(), nullable=False),
        sa.Column('rubric_id', UUID, nullable=True),
        sa.Column('criteria_scores', sa.JSON(), nullable=True),
        sa.Column('feedback', sa.Text(), nullable=True),
        sa.Column('graded_by', sa.String(), nullable=False),
        sa.Column('graded_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('auto_graded', sa.Boolean(), nullable=False, server_default=sa.text('false')),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('is_current', sa.Boolean(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('answer_id', 'version', name='uq_question_scores_answer_version'),
    )
    # At most one current version per answer
    op.create_index(
        'uq_question_scores_current_answer',
        'question_scores',
        ['answer_id'],
        unique=True,
        postgresql_where=sa.text('is_current IS TRUE'),
    )
    op.create_index(
        'ix_question_scores_submission_current',
        'question_scores',
        ['submission_id', 'is_current'],
    )


def downgrade() -> None:
    op.drop_index('ix_question_scores_submission_current', table_name='question_scores')
    op.drop_index('uq_question_scores_current_answer', table_name='question_scores')
    op.drop_table('question_scores')
    op.drop_table('user_activity_submission_answers')
    op.drop_table('user_activity_submissions')
    op.drop_table('question_scoring')
    op.drop_table('activity_elements')
    op.drop_table('questions')
    op.drop_table('activities')
    op.drop_table('users')
    for enum_name in ('answerstatus', 'submissionstatus', 'scoringtype', 'elementstatus', 'role'):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
