from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Iterable, Optional, Sequence, Union

from .models import AccessState, ColumnInfo, EntityScanResult, Severity

USER_ISOLATED = "user-isolated"
MULTI_TENANT = "multi-tenant"
PUBLIC_OPTIONAL = "public-optional"
GENERIC = "generic"

OWNER_COLUMNS = ("user_id", "owner_id", "created_by", "author_id", "uid")
TENANT_COLUMNS = ("org_id", "organization_id", "tenant_id", "company_id", "workspace_id")
PUBLIC_FLAG_COLUMNS = ("is_public", "public", "published")

POLICY_NAMES = ("select_policy", "insert_policy", "update_policy", "delete_policy")

RECOMMENDATIONS = {
    USER_ISOLATED: "User isolation detected. Policies ensure users can only access their own data.",
    MULTI_TENANT: "Multi-tenant pattern detected. Policies enforce organization-level isolation.",
    PUBLIC_OPTIONAL: "Public/private data detected. Review the public flag logic carefully.",
    GENERIC: "Generic policies applied. CUSTOMIZE these based on your access requirements!",
}

ColumnLike = Union[ColumnInfo, str]


@dataclass
class PatternMatch:
    pattern: str
    user_column: Optional[str] = None
    tenant_column: Optional[str] = None
    public_column: Optional[str] = None


@dataclass
class PolicyResult:
    table: str
    sql: str
    detected_pattern: str
    recommendation: str


def quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def _comment(text: str) -> str:
    return " ".join(str(text).split())


def _column_names(columns: Iterable[ColumnLike]) -> list:
    return [c if isinstance(c, str) else c.name for c in columns]


def _find(names: Sequence[str], candidates: Sequence[str]) -> Optional[str]:
    for name in names:
        if name.lower() in candidates:
            return name
    return None


def detect_pattern(columns: Iterable[ColumnLike]) -> PatternMatch:
    names = _column_names(columns)
    user_col = _find(names, OWNER_COLUMNS)
    tenant_col = _find(names, TENANT_COLUMNS)
    public_col = _find(names, PUBLIC_FLAG_COLUMNS)

    # an owner column next to a public flag is the owner half of public-or-mine
    if user_col and public_col:
        pattern = PUBLIC_OPTIONAL
    elif user_col:
        pattern = USER_ISOLATED
    elif tenant_col:
        pattern = MULTI_TENANT
    elif public_col:
        pattern = PUBLIC_OPTIONAL
    else:
        pattern = GENERIC
    return PatternMatch(pattern=pattern, user_column=user_col, tenant_column=tenant_col, public_column=public_col)


def _policy(name: str, table: str, command: str, using: str = None, check: str = None) -> str:
    lines = [f'CREATE POLICY "{name}"', f"ON {table}", f"FOR {command}", "TO authenticated"]
    if using:
        lines.append(f"USING ({using})")
    if check:
        lines.append(f"WITH CHECK ({check})")
    return "\n".join(lines) + ";\n"


def _user_isolated(t: str, match: PatternMatch) -> str:
    owner = f"{quote_ident(match.user_column)} = auth.uid()"
    return "\n".join([
        "-- Step 3: User-Isolated Policies",
        "-- Users can only access their own data",
        "",
        _policy("select_policy", t, "SELECT", using=owner),
        _policy("insert_policy", t, "INSERT", check=owner),
        _policy("update_policy", t, "UPDATE", using=owner, check=owner),
        _policy("delete_policy", t, "DELETE", using=owner),
    ])


def _multi_tenant(t: str, match: PatternMatch) -> str:
    membership = (
        f"\n    {quote_ident(match.tenant_column)} IN (\n"
        "        SELECT org_id FROM user_organizations\n"
        "        WHERE user_id = auth.uid()\n"
        "    )\n"
    )
    return "\n".join([
        "-- Step 3: Multi-Tenant Policies",
        "-- Users can access data from their organization",
        "",
        _policy("select_policy", t, "SELECT", using=membership),
        _policy("insert_policy", t, "INSERT", check=membership),
        "-- Note: Adjust user_organizations table name to match your schema",
        "",
    ])


def _public_optional(t: str, match: PatternMatch) -> str:
    owner = quote_ident(match.user_column or "user_id")
    visible = f"\n    {quote_ident(match.public_column)} = true\n    OR {owner} = auth.uid()\n"
    return "\n".join([
        "-- Step 3: Public-Optional Policies",
        "-- Public data is readable by all, private data only by owner",
        "",
        _policy("select_policy", t, "SELECT", using=visible),
        _policy("insert_policy", t, "INSERT", check="auth.uid() IS NOT NULL"),
    ])


def _generic(t: str, match: PatternMatch) -> str:
    return "\n".join([
        "-- Step 3: Generic Authenticated-Only Policies",
        "-- Restrict to authenticated users only",
        "",
        _policy("select_policy", t, "SELECT", using="auth.uid() IS NOT NULL"),
        _policy("insert_policy", t, "INSERT", check="auth.uid() IS NOT NULL"),
        "-- WARNING: These policies allow all authenticated users to access all data.",
        "-- Review and customize based on your requirements.",
        "",
    ])


_BUILDERS = {
    USER_ISOLATED: _user_isolated,
    MULTI_TENANT: _multi_tenant,
    PUBLIC_OPTIONAL: _public_optional,
    GENERIC: _generic,
}


def synthesize(table_name: str, columns: Iterable[ColumnLike], generated_at: datetime = None) -> PolicyResult:
    match = detect_pattern(columns)
    t = quote_ident(table_name)
    generated_at = generated_at or datetime.now(timezone.utc)

    header = "\n".join([
        "-- ============================================",
        f"-- RLS Policies for: {_comment(table_name)}",
        f"-- Pattern: {match.pattern}",
        f"-- Generated: {generated_at.isoformat()}",
        "-- ============================================",
        "",
        "-- Step 1: Enable Row Level Security",
        f"ALTER TABLE {t} ENABLE ROW LEVEL SECURITY;",
        "",
        "-- Step 2: Drop existing policies (clean slate)",
        *[f'DROP POLICY IF EXISTS "{name}" ON {t};' for name in POLICY_NAMES],
        "",
        "",
    ])
    footer = "\n".join([
        "",
        "-- Step 4: (Optional) Admin Override",
        "-- Uncomment if you have an admin role system",
        "/*",
        'CREATE POLICY "admin_all_policy"',
        f"ON {t}",
        "FOR ALL",
        "TO authenticated",
        "USING (",
        "    EXISTS (",
        "        SELECT 1 FROM user_roles",
        "        WHERE user_id = auth.uid() AND role = 'admin'",
        "    )",
        ");",
        "*/",
        "",
        "-- Step 5: Grant permissions",
        f"GRANT SELECT, INSERT, UPDATE, DELETE ON {t} TO authenticated;",
        f"GRANT SELECT ON {t} TO anon;  -- Remove if table should not be publicly readable",
        "",
    ])
    sql = header + _BUILDERS[match.pattern](t, match) + footer
    return PolicyResult(table=table_name, sql=sql, detected_pattern=match.pattern, recommendation=RECOMMENDATIONS[match.pattern])


def generate_policy(table_name: str, columns: Iterable[ColumnLike]) -> str:
    return synthesize(table_name, columns).sql


def needs_policy(entity: EntityScanResult) -> bool:
    return entity.access_state == AccessState.ACCESSIBLE and entity.severity not in (None, Severity.SAFE)


class FixGenerator:
    def generate(self, entities: Iterable[EntityScanResult], generated_at: datetime = None) -> str:
        """
        Consolidated migration for every readable, non-safe table, wrapped in
        one transaction. Blocked, errored and safe tables are skipped.
        """
        vulnerable = [e for e in entities if needs_policy(e)]
        if not vulnerable:
            return "-- No vulnerable tables found. All tables are protected!\n"

        generated_at = generated_at or datetime.now(timezone.utc)
        sql_content = f"""-- ============================================
-- RLS MIGRATION
-- Generated: {generated_at.isoformat()}
-- Vulnerable Tables: {len(vulnerable)}
-- ============================================
--
-- WARNING: Review all commands before executing!
-- 1. Customize each policy to your access requirements
-- 2. Test in a development environment first
--
-- ============================================

BEGIN;

"""
        blocks = [synthesize(e.name, e.columns, generated_at).sql for e in vulnerable]
        sql_content += "\n-- ============================================\n\n".join(blocks)
        sql_content += """
COMMIT;

-- Next steps:
-- 1. Verify policies are active: SELECT * FROM pg_policies;
-- 2. Test access with different user roles
"""
        return sql_content


def generate_bulk_migration(entities: Iterable[EntityScanResult]) -> str:
    return FixGenerator().generate(entities)
