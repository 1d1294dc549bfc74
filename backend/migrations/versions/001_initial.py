"""Initial migration - create all tables

Revision ID: 001_initial
Revises: None
Create Date: 2024-03-01

Creates the snapshot tables read by the Campus Analytics API:
- students: Campus users with identity, cursus fields and status flags
- projects: Project attempt facts (score -42 marks a cheating flag)
- location_stats: Attendance as a month -> day -> "HH:MM:SS" map
- location_sessions: Attendance as begin/end session intervals
- feedbacks: Evaluation feedback with optional rating
- patronages: Mentor/mentee lists per student
- patronage_edges: Mentor/mentee graph as one edge per row

Also creates indexes for the ranking joins and directory filters.
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # ── Students Table ────────────────────────────────────────
    op.create_table(
        'students',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=False),
        sa.Column('login', sa.String(50), nullable=False, unique=True),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.Text(), nullable=True),
        sa.Column('first_name', sa.Text(), nullable=True),
        sa.Column('last_name', sa.Text(), nullable=True),
        sa.Column('usual_full_name', sa.Text(), nullable=True),
        sa.Column('displayname', sa.Text(), nullable=True),
        sa.Column('image', sa.Text(), nullable=True),
        sa.Column('level', sa.Float(), nullable=True),
        sa.Column('wallet', sa.Integer(), nullable=True),
        sa.Column('correction_point', sa.Integer(), nullable=True),
        sa.Column('grade', sa.Text(), nullable=True),
        sa.Column('pool_month', sa.Text(), nullable=True),
        sa.Column('pool_year', sa.Text(), nullable=True),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('alumni', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('staff', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('blackholed', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('freeze', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('sinker', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_test', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_piscine', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_trans', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )

    op.create_index('ix_students_campus_id', 'students', ['campus_id'])
    op.create_index('ix_students_pool', 'students', ['pool_month', 'pool_year'])

    # ── Projects Table ────────────────────────────────────────
    op.create_table(
        'projects',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('login', sa.String(50), nullable=False),
        sa.Column('project', sa.Text(), nullable=False),
        sa.Column('score', sa.Float(), nullable=False, server_default='0'),
        sa.Column('status', sa.Text(), nullable=False),
        sa.Column('date', sa.Text(), nullable=False),
    )

    # Ranking joins group projects by login
    op.create_index('ix_projects_login', 'projects', ['login'])
    op.create_index('ix_projects_login_project_date', 'projects', ['login', 'project', 'date'])
    op.create_index('ix_projects_score', 'projects', ['score'])

    # ── Attendance Tables ─────────────────────────────────────
    op.create_table(
        'location_stats',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('login', sa.String(50), nullable=False),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('months', sa.Text(), nullable=False, server_default='{}'),
        sa.Column('last_updated', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_location_stats_login', 'location_stats', ['login'])

    op.create_table(
        'location_sessions',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('login', sa.String(50), nullable=False),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('host', sa.Text(), nullable=True),
        sa.Column('begin_at', sa.DateTime(), nullable=False),
        sa.Column('end_at', sa.DateTime(), nullable=True),
    )
    op.create_index('ix_location_sessions_login', 'location_sessions', ['login'])
    op.create_index('ix_location_sessions_begin_at', 'location_sessions', ['begin_at'])

    # ── Feedbacks Table ───────────────────────────────────────
    op.create_table(
        'feedbacks',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('evaluator', sa.String(50), nullable=False),
        sa.Column('evaluated', sa.String(50), nullable=False),
        sa.Column('project', sa.Text(), nullable=True),
        sa.Column('date', sa.Text(), nullable=True),
        sa.Column('rating', sa.Float(), nullable=True),
        sa.Column('comment', sa.Text(), nullable=True),
    )
    op.create_index('ix_feedbacks_evaluated', 'feedbacks', ['evaluated'])

    # ── Patronage Tables ──────────────────────────────────────
    op.create_table(
        'patronages',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('login', sa.String(50), nullable=False),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('godfathers', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('children', sa.Text(), nullable=False, server_default='[]'),
        sa.Column('last_updated', sa.DateTime(), server_default=sa.func.now(), nullable=True),
    )
    op.create_index('ix_patronages_login', 'patronages', ['login'])

    op.create_table(
        'patronage_edges',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('campus_id', sa.Integer(), nullable=False),
        sa.Column('user_login', sa.String(50), nullable=False),
        sa.Column('godfather_login', sa.String(50), nullable=False),
    )
    op.create_index('ix_patronage_edges_user_login', 'patronage_edges', ['user_login'])
    op.create_index('ix_patronage_edges_godfather_login', 'patronage_edges', ['godfather_login'])


def downgrade() -> None:
    """Drop all tables and their indexes."""
    op.drop_index('ix_patronage_edges_godfather_login', table_name='patronage_edges')
    op.drop_index('ix_patronage_edges_user_login', table_name='patronage_edges')
    op.drop_table('patronage_edges')
    op.drop_index('ix_patronages_login', table_name='patronages')
    op.drop_table('patronages')
    op.drop_index('ix_feedbacks_evaluated', table_name='feedbacks')
    op.drop_table('feedbacks')
    op.drop_index('ix_location_sessions_begin_at', table_name='location_sessions')
    op.drop_index('ix_location_sessions_login', table_name='location_sessions')
    op.drop_table('location_sessions')
    op.drop_index('ix_location_stats_login', table_name='location_stats')
    op.drop_table('location_stats')
    op.drop_index('ix_projects_score', table_name='projects')
    op.drop_index('ix_projects_login_project_date', table_name='projects')
    op.drop_index('ix_projects_login', table_name='projects')
    op.drop_table('projects')
    op.drop_index('ix_students_pool', table_name='students')
    op.drop_index('ix_students_campus_id', table_name='students')
    op.drop_table('students')
