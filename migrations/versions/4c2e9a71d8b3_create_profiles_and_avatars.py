"""create_profiles_and_avatars

Revision ID: 4c2e9a71d8b3
Revises:
Create Date: 2026-10-18 09:12:44.118203

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "4c2e9a71d8b3"
down_revision: str | Sequence[str] | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    """Create the profiles table and the public avatars bucket.

    Profile rows are keyed by the Supabase auth user id. All other columns
    are nullable so that an avatar-only upsert can create the row.
    """
    op.create_table(
        "profiles",
        sa.Column("id", postgresql.UUID(as_uuid=False), primary_key=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("full_name", sa.String(200), nullable=True),
        sa.Column("username", sa.String(50), nullable=True, unique=True),
        sa.Column("instagram_handle", sa.String(100), nullable=True),
        sa.Column("avatar_url", sa.String(1000), nullable=True),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["id"], ["auth.users.id"], ondelete="CASCADE"),
    )

    # --- Row Level Security: a user sees and writes only their own row ---
    op.execute("ALTER TABLE profiles ENABLE ROW LEVEL SECURITY;")
    op.execute("""
        CREATE POLICY profiles_select_own ON profiles
            FOR SELECT USING ((SELECT auth.uid()) = id);
    """)
    op.execute("""
        CREATE POLICY profiles_insert_own ON profiles
            FOR INSERT WITH CHECK ((SELECT auth.uid()) = id);
    """)
    op.execute("""
        CREATE POLICY profiles_update_own ON profiles
            FOR UPDATE USING ((SELECT auth.uid()) = id);
    """)

    # --- Avatars bucket: public read, owner-only write under {uid}/ ---
    op.execute("""
        INSERT INTO storage.buckets (id, name, public)
        VALUES ('avatars', 'avatars', true)
        ON CONFLICT (id) DO NOTHING;
    """)
    op.execute("""
        CREATE POLICY avatars_public_read ON storage.objects
            FOR SELECT USING (bucket_id = 'avatars');
    """)
    op.execute("""
        CREATE POLICY avatars_owner_insert ON storage.objects
            FOR INSERT WITH CHECK (
                bucket_id = 'avatars'
                AND (storage.foldername(name))[1] = (SELECT auth.uid())::text
            );
    """)
    op.execute("""
        CREATE POLICY avatars_owner_update ON storage.objects
            FOR UPDATE USING (
                bucket_id = 'avatars'
                AND (storage.foldername(name))[1] = (SELECT auth.uid())::text
            );
    """)


def downgrade() -> None:
    """Drop avatar policies and the profiles table. Stored objects are kept."""
    for policy in ("avatars_owner_update", "avatars_owner_insert", "avatars_public_read"):
        op.execute(f"DROP POLICY IF EXISTS {policy} ON storage.objects;")
    op.drop_table("profiles")
