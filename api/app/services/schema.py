"""Idempotent Postgres DDL for the channel catalog and admin sessions."""

import textwrap

SCHEMA_STATEMENTS: tuple[str, ...] = (
    """
    create table if not exists channels (
      id uuid primary key default gen_random_uuid(),
      seq bigserial not null,
      link text not null,
      name text not null,
      image text not null default '',
      boosted_at timestamptz not null,
      created_at timestamptz not null default now()
    )
    """,
    """
    create unique index if not exists channels_link_key on channels (link)
    """,
    """
    create index if not exists channels_ranking_idx on channels (boosted_at desc, seq asc)
    """,
    """
    create table if not exists channel_boosts (
      id bigserial primary key,
      channel_id uuid not null references channels (id) on delete cascade,
      identity text not null,
      boosted_at timestamptz not null
    )
    """,
    """
    create index if not exists channel_boosts_identity_idx on channel_boosts (identity, boosted_at desc)
    """,
    """
    create index if not exists channel_boosts_channel_idx on channel_boosts (channel_id, boosted_at)
    """,
    """
    create table if not exists admin_sessions (
      token_hash text primary key,
      created_at timestamptz not null default now(),
      expires_at timestamptz not null
    )
    """,
)


def render_schema_sql() -> str:
    chunks = [textwrap.dedent(statement).strip() + ";" for statement in SCHEMA_STATEMENTS]
    return "\n\n".join(chunks) + "\n"
