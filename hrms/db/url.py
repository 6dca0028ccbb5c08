from __future__ import annotations

from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def normalize_database_url(url: str) -> str:
    """Coerce a Postgres URL into the ``postgresql+asyncpg`` form the engine expects.

    Hosted providers hand out ``postgres://`` URLs with ``sslmode=``; asyncpg
    takes ``ssl=`` instead.
    """
    url = (url or "").strip()
    if not url:
        return url

    parts = urlsplit(url)
    scheme = parts.scheme
    if scheme in {"postgres", "postgresql", "postgresql+psycopg", "postgresql+psycopg2"}:
        scheme = "postgresql+asyncpg"
    if scheme != "postgresql+asyncpg":
        return url

    query = dict(parse_qsl(parts.query, keep_blank_values=True))
    sslmode = query.pop("sslmode", None)
    if sslmode is not None and "ssl" not in query:
        normalized = sslmode.lower().strip()
        if normalized in {"disable", "allow"}:
            query["ssl"] = "disable"
        else:
            query["ssl"] = normalized or "require"

    new_query = urlencode(query, doseq=True)
    return urlunsplit((scheme, parts.netloc, parts.path, new_query, parts.fragment))
