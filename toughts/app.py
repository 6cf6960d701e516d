#!/usr/bin/env python3
"""
A single-file notes board: post short "toughts", browse the public feed,
manage your own from a dashboard.
"""

import os
import re
import secrets
import sqlite3
from collections import defaultdict, deque
from datetime import datetime, timedelta, timezone
from functools import wraps
from html import escape
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from time import time
from typing import DefaultDict
from urllib.parse import quote, urlencode
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import click
import markdown
from flask import (
    Flask,
    Response,
    abort,
    flash,
    g,
    redirect,
    render_template_string,
    request,
    session,
    url_for,
)
from markupsafe import Markup
from werkzeug.middleware.proxy_fix import ProxyFix
from werkzeug.security import check_password_hash, generate_password_hash

################################################################################
# Imports & constants
################################################################################

ROOT = Path(__file__).parent
DB_FILE = Path(os.environ.get("TOUGHTS_DB", str(ROOT / "toughts.sqlite3")))

SECRET_FILE = ROOT / ".secret_key"
SECRET_KEY = os.environ.get("TOUGHTS_SECRET_KEY", "").strip()
if not SECRET_KEY:
    SECRET_KEY = (
        SECRET_FILE.read_text().strip()
        if SECRET_FILE.exists()
        else secrets.token_hex(32)
    )
    SECRET_FILE.write_text(SECRET_KEY)

SITE_NAME = "Toughts"
PAGE_SIZE = 5  # toughts per page, feed and dashboard alike
PAGE_WINDOW = 2  # links shown on each side of the current page
ELLIPSIS = "..."
ORDERS = ("new", "old")
ORDER_DEFAULT = "new"
TITLE_MAX = 255
MSG_NOT_PERMITTED = "Operation not permitted!"
MSG_WRITE_FAILED = "Something went wrong, please try again."
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")

TZ_NAME = os.environ.get("TOUGHTS_TZ", "UTC")
COOKIE_SECURE = os.environ.get("TOUGHTS_COOKIE_SECURE", "0") == "1"

INLINE_MD_EXTENSIONS = [
    "pymdownx.tilde",
    "pymdownx.mark",
    "pymdownx.betterem",
]

try:
    __version__ = version("toughts")
except PackageNotFoundError:
    __version__ = "0.1.0-dev"


################################################################################
# App + template filters
################################################################################
app = Flask(__name__)
app.url_map.strict_slashes = False
app.config.update(SECRET_KEY=SECRET_KEY, DATABASE=str(DB_FILE))
app.config.update(
    SESSION_COOKIE_NAME="session",
    SESSION_COOKIE_SAMESITE="Lax",
    SESSION_COOKIE_HTTPONLY=True,
    SESSION_COOKIE_SECURE=COOKIE_SECURE,  # turn on behind HTTPS
    PERMANENT_SESSION_LIFETIME=timedelta(hours=1),
)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1)


@app.template_filter("md")
def md_filter(text: str | None) -> Markup:
    """
    Render a tought as inline Markdown (*em*, **strong**, ~~del~~, ==mark==).
    Raw HTML is escaped before Markdown sees it; a lone <p> wrapper is dropped.
    """
    if not text:
        return Markup("")
    html = markdown.markdown(escape(text), extensions=INLINE_MD_EXTENSIONS)
    if html.startswith("<p>") and html.endswith("</p>"):
        html = html[3:-4].strip()
    return Markup(html)


def display_tz():
    try:
        return ZoneInfo(TZ_NAME)
    except (ZoneInfoNotFoundError, ValueError):
        return timezone.utc


@app.template_filter("ts")
def ts_filter(iso: str | None) -> str:
    if not iso:
        return ""
    try:
        dt = datetime.fromisoformat(iso)
    except ValueError:
        return iso
    return dt.astimezone(display_tz()).strftime("%Y.%m.%d %H:%M")


###############################################################################
# Database helpers
###############################################################################
def casefold(text: str | None) -> str | None:
    """SQL helper: full Unicode case folding (sqlite's LIKE only folds ASCII)."""
    return text.casefold() if text is not None else None


def get_db():
    if "db" not in g:
        g.db = sqlite3.connect(app.config["DATABASE"])
        g.db.execute("PRAGMA foreign_keys = ON;")
        g.db.row_factory = sqlite3.Row
        g.db.create_function("casefold", 1, casefold, deterministic=True)
    return g.db


@app.teardown_appcontext
def close_db(error=None):
    db = g.pop("db", None)
    if db is not None:
        db.close()


def init_db():
    db = get_db()
    db.executescript(
        """
        CREATE TABLE IF NOT EXISTS user (
            id             INTEGER PRIMARY KEY,
            name           TEXT NOT NULL,
            email          TEXT UNIQUE NOT NULL,
            password_hash  TEXT NOT NULL,
            created_at     TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS tought (
            id          INTEGER PRIMARY KEY,
            title       TEXT NOT NULL,
            user_id     INTEGER NOT NULL REFERENCES user(id) ON DELETE CASCADE,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_tought_created ON tought(created_at);
        CREATE INDEX IF NOT EXISTS idx_tought_user
            ON tought(user_id, created_at);
        """
    )
    db.commit()


# -------------------------------------------------------------------------
# Time helpers
# -------------------------------------------------------------------------
def utc_now() -> datetime:
    """Return an *aware* datetime in UTC."""
    return datetime.now(timezone.utc)


def now_iso() -> str:
    return utc_now().isoformat(timespec="seconds")


###############################################################################
# Accounts
###############################################################################
def create_user(db, *, name: str, email: str, password: str) -> int:
    """Insert a user row and return its id (raises IntegrityError on dupes)."""
    cur = db.execute(
        "INSERT INTO user (name, email, password_hash, created_at) VALUES (?,?,?,?)",
        (name, email.lower(), generate_password_hash(password), now_iso()),
    )
    db.commit()
    return cur.lastrowid


def find_user_by_email(email: str, *, db):
    return db.execute(
        "SELECT * FROM user WHERE email=?", (email.strip().lower(),)
    ).fetchone()


def current_user():
    uid = session.get("user_id")
    if not uid:
        return None
    return get_db().execute("SELECT * FROM user WHERE id=?", (uid,)).fetchone()


###############################################################################
# CLI – init DB + accounts
###############################################################################
@app.cli.command("init")
def cli_init():
    """Create the tables (no-op if they already exist)."""
    init_db()
    click.secho("\n✅  Database ready at " + app.config["DATABASE"], fg="green")


@app.cli.command("add-user")
@click.option("--name", prompt=True, help="Display name")
@click.option("--email", prompt=True, help="Login e-mail (must be unique)")
@click.password_option()
def cli_add_user(name: str, email: str, password: str):
    """Create an account without going through /register."""
    init_db()
    db = get_db()
    if find_user_by_email(email, db=db):
        raise click.ClickException(f"{email} is already registered.")
    uid = create_user(db, name=name.strip(), email=email.strip(), password=password)
    click.secho(f"\n👤  User #{uid} created.", fg="green")


###############################################################################
# Listing – search / sort / paginate
###############################################################################
def parse_page(raw) -> int:
    """
    Coerce a raw ``page`` value into a positive int.
    Anything unparsable, empty, zero or negative becomes 1. There is no prefix
    parsing, so ``"3abc"`` and ``"2.5"`` also become 1.
    """
    try:
        page = int(raw)
    except (TypeError, ValueError):
        return 1
    return page if page >= 1 else 1


def parse_order(raw: str | None) -> str:
    order = (raw or "").strip().lower()
    return order if order in ORDERS else ORDER_DEFAULT


def _like_escape(term: str) -> str:
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def total_pages_for(total: int, per_page: int = PAGE_SIZE) -> int:
    return (total + per_page - 1) // per_page


def find_page(base_sql: str, params: tuple, *, offset: int, limit: int, db):
    """Run *base_sql* once for the count and once for the slice."""
    total = db.execute(f"SELECT COUNT(*) FROM ({base_sql})", params).fetchone()[0]
    rows = db.execute(
        f"{base_sql} LIMIT ? OFFSET ?", params + (limit, offset)
    ).fetchall()
    return rows, total


def compute_listing(
    search: str | None,
    order: str | None,
    page,
    owner_id: int | None = None,
    *,
    db,
) -> dict:
    """
    Fetch one page of toughts.

    • ``search``   case-insensitive substring of the title ('' → everything)
    • ``order``    'new' (default) or 'old', by creation time
    • ``owner_id`` restrict to one author (dashboard); None for the feed
    """
    search = (search or "").strip()
    order = parse_order(order)
    page = parse_page(page)

    conds, params = [], []
    if search:
        conds.append("casefold(t.title) LIKE casefold(?) ESCAPE '\\'")
        params.append(f"%{_like_escape(search)}%")
    if owner_id is not None:
        conds.append("t.user_id = ?")
        params.append(owner_id)
    where = " AND ".join(conds) or "1"
    direction = "ASC" if order == "old" else "DESC"

    base_sql = f"""
        SELECT t.id, t.title, t.user_id, t.created_at, t.updated_at,
               u.name AS author
          FROM tought t
          JOIN user u ON u.id = t.user_id
         WHERE {where}
         ORDER BY t.created_at {direction}, t.id {direction}
    """
    rows, total = find_page(
        base_sql,
        tuple(params),
        offset=(page - 1) * PAGE_SIZE,
        limit=PAGE_SIZE,
        db=db,
    )
    return {
        "items": rows,
        "total": total,
        "total_pages": total_pages_for(total),
        "empty": total == 0,
        "page": page,
        "order": order,
        "search": search,
    }


###############################################################################
# Pagination links
###############################################################################
def build_pagination_url(page: int, search: str | None = None, order: str | None = None) -> str:
    """``?page=3&search=node%20js&order=old`` – search/order only when set."""
    params = {"page": page}
    if search:
        params["search"] = search
    if order:
        params["order"] = order
    return "?" + urlencode(params, quote_via=quote)


def compute_pagination_view(
    current_page, total_pages, search: str | None = None, order: str | None = None
) -> dict:
    """
    Build the prev/next URLs and the windowed list of page links.

    Pages 1 and *total_pages* are always shown, plus PAGE_WINDOW pages on each
    side of the current one. Each gap collapses into a single ellipsis entry.
    """
    current = parse_page(current_page)
    last = parse_page(total_pages)

    view = {"prev_url": None, "next_url": None, "pages": []}
    if current > 1:
        view["prev_url"] = build_pagination_url(current - 1, search, order)
    if current < last:
        view["next_url"] = build_pagination_url(current + 1, search, order)

    pages = view["pages"]
    for i in range(1, last + 1):
        if i == 1 or i == last or current - PAGE_WINDOW <= i <= current + PAGE_WINDOW:
            pages.append(
                {
                    "page": i,
                    "url": build_pagination_url(i, search, order),
                    "is_current": i == current,
                    "is_ellipsis": False,
                }
            )
        elif pages and not pages[-1]["is_ellipsis"]:
            pages.append(
                {"page": ELLIPSIS, "url": None, "is_current": False, "is_ellipsis": True}
            )
    return view


def _csrf_token() -> str:
    """One token per session (rotates on login)."""
    return session.get("csrf", "")


# Expose helpers to templates
app.jinja_env.globals["pagination"] = compute_pagination_view
app.jinja_env.globals["csrf_token"] = _csrf_token
app.jinja_env.globals["version"] = __version__
app.jinja_env.globals["site_name"] = SITE_NAME

###############################################################################
# Templates + Views
###############################################################################


def wrap(body: str) -> str:
    """Glue prolog + page-specific body + epilog."""
    return TEMPL_PROLOG + body + TEMPL_EPILOG


TEMPL_PROLOG = """
<!doctype html>
<html lang="en">
<title>{{ title or site_name }}</title>
<meta name="viewport" content="width=device-width, initial-scale=1">
<meta charset="utf-8">
<style>
html{font-size:62.5%;font-family:-apple-system,BlinkMacSystemFont,"Segoe UI",Roboto,"Helvetica Neue",Arial,sans-serif}
body{font-size:1.8rem;line-height:1.618;max-width:38em;margin:auto;color:#c9c9c9;background-color:#222;padding:13px}
a{color:#fff;text-decoration:underline;text-decoration-color:transparent;text-underline-offset:.18em}
a:hover{color:#c9c9c9;text-decoration-color:#c9c9c9}
h1,h2{line-height:1.1;margin-top:3rem;margin-bottom:1.5rem}
textarea,select,input{color:#c9c9c9;padding:6px 10px;margin-bottom:10px;background-color:#4a4a4a;border:1px solid #4a4a4a;border-radius:4px;box-sizing:border-box}
button,input[type=submit]{padding:5px 10px;background-color:#fff;color:#222;border:1px solid #fff;border-radius:1px;cursor:pointer}
label{display:block;margin-bottom:.5rem;font-weight:600}
.nav-row{display:flex;gap:1.25rem;flex-wrap:wrap;font-size:.9em}
nav a[aria-current=page]{color:#c9c9c9;text-decoration-color:currentColor}
.tought{padding:1em 0;border-bottom:1px solid #444}
.tought small{color:#aaa}
.pager{margin-top:2em;padding-top:1em;font-size:.75em;display:flex;gap:.6em;flex-wrap:wrap}
.pager .current{border-bottom:.33rem solid #aaa}
.inline-form{display:inline;margin:0}
.inline-form button{padding:0 .5em;font-size:.8em}
</style>
<body>
{% macro pagination_nav(view) -%}
    {% if view.pages|length > 1 %}
    <nav class="pager" aria-label="Pagination">
        {% if view.prev_url %}<a href="{{ view.prev_url }}" rel="prev">&laquo;&nbsp;Prev</a>{% endif %}
        {% for p in view.pages %}
            {% if p.is_ellipsis %}
                <span aria-hidden="true">{{ p.page }}</span>
            {% elif p.is_current %}
                <span class="current" aria-current="page">{{ p.page }}</span>
            {% else %}
                <a href="{{ p.url }}">{{ p.page }}</a>
            {% endif %}
        {% endfor %}
        {% if view.next_url %}<a href="{{ view.next_url }}" rel="next">Next&nbsp;&raquo;</a>{% endif %}
    </nav>
    {% endif %}
{%- endmacro %}
<div class="container">
    <h1 style="margin-top:0">
        <a href="{{ url_for('feed') }}" style="text-decoration:none">{{ site_name }}</a>
    </h1>
    <nav aria-label="Primary" class="nav-row">
        <a href="{{ url_for('feed') }}"
        {% if kind=='feed' %}aria-current="page"{% endif %}>Feed</a>
        {% if session.get('user_id') %}
            <a href="{{ url_for('dashboard') }}"
            {% if kind=='dashboard' %}aria-current="page"{% endif %}>Dashboard</a>
            <a href="{{ url_for('add_tought') }}"
            {% if kind=='add' %}aria-current="page"{% endif %}>New&nbsp;tought</a>
            <a href="{{ url_for('logout') }}">Logout</a>
        {% else %}
            <a href="{{ url_for('login') }}"
            {% if request.endpoint=='login' %}aria-current="page"{% endif %}>Login</a>
            <a href="{{ url_for('register') }}"
            {% if request.endpoint=='register' %}aria-current="page"{% endif %}>Register</a>
        {% endif %}
    </nav>
    {% with msgs = get_flashed_messages() %}
    {% if msgs %}
        <div role="status" aria-live="polite" style="position:fixed;top:1rem;right:1rem;background:#323232;color:#fff;padding:.75rem 1rem;border-radius:.4rem;font-size:.9rem;max-width:24rem;z-index:999;">
        {% for m in msgs %}{{ m }}{% if not loop.last %}<br>{% endif %}{% endfor %}
        </div>
    {% endif %}
    {% endwith %}
    <main id="main-content" role="main">
"""

TEMPL_EPILOG = """
    </main>
    <footer style="margin-top:1.875em;padding-top:1.5em;font-size:.8em;color:#888;border-top:1px solid #444;">
        {{ site_name }} <span style="color:#aaa">v{{ version }}</span>
    </footer>
</div>
</body>
</html>
"""

TEMPL_CSRF = """
{% if csrf_token() %}
<input type="hidden" name="csrf" value="{{ csrf_token() }}">
{% endif %}
"""


###############################################################################
# Authentication
###############################################################################
def login_required(view):
    """Send anonymous visitors to the login form."""

    @wraps(view)
    def wrapped(*args, **kwargs):
        if not session.get("user_id"):
            return redirect(url_for("login"))
        return view(*args, **kwargs)

    return wrapped


def rate_limit(max_requests: int, window: int = 60):
    """Cap form submissions (POST) per client IP within *window* seconds."""
    hits: DefaultDict[str, deque] = defaultdict(deque)

    def decorator(view):
        @wraps(view)
        def wrapped(*args, **kwargs):
            if request.method != "POST":
                return view(*args, **kwargs)

            now = time()
            # left-most entry after ProxyFix = real client
            ip = (
                request.access_route[0] if request.access_route else request.remote_addr
            ) or "unknown"

            # forget clients whose newest hit has aged out
            for stale in [k for k, d in hits.items() if now - d[-1] > window]:
                del hits[stale]

            dq = hits[ip]
            while dq and now - dq[0] > window:
                dq.popleft()

            if len(dq) >= max_requests:
                retry_after = int(window - (now - dq[0]))
                return Response(
                    "Too many requests – try again later.",
                    status=429,
                    headers={"Retry-After": str(retry_after)},
                )

            dq.append(now)
            return view(*args, **kwargs)

        wrapped.hits = hits
        return wrapped

    return decorator


def _start_session(user_id: int) -> None:
    session.clear()
    session.permanent = True
    session["user_id"] = user_id
    session["csrf"] = secrets.token_hex(16)


@app.route("/login", methods=["GET", "POST"])
@rate_limit(max_requests=5, window=60)
def login():
    email = request.form.get("email", "").strip()

    if request.method == "POST":
        password = request.form.get("password", "")
        user = find_user_by_email(email, db=get_db()) if email else None
        if not user:
            flash("User not found!")
        elif not check_password_hash(user["password_hash"], password):
            flash("Invalid password!")
        else:
            _start_session(user["id"])
            app.logger.info("user %s logged in", user["id"])
            flash("Login successful!")
            return redirect(url_for("feed"))

    return render_template_string(TEMPL_LOGIN, title="Login", email=email)


TEMPL_LOGIN = wrap("""
{% block body %}
<hr>
<h2>Login</h2>
<form method="post">
  """ + TEMPL_CSRF + """
  <label for="email">E-mail</label>
  <input id="email" name="email" type="email" value="{{ email }}" autocomplete="username" required>
  <label for="password">Password</label>
  <input id="password" name="password" type="password" autocomplete="current-password" required>
  <div><button type="submit">Sign&nbsp;in</button></div>
</form>
<p><small>No account yet? <a href="{{ url_for('register') }}">Register</a>.</small></p>
{% endblock %}
""")


@app.route("/register", methods=["GET", "POST"])
@rate_limit(max_requests=5, window=60)
def register():
    name = request.form.get("name", "").strip()
    email = request.form.get("email", "").strip().lower()

    if request.method == "POST":
        password = request.form.get("password", "")
        confirm = request.form.get("confirmpassword", "")
        db = get_db()

        if not name or not email or not password:
            flash("Name, e-mail and password are required.")
        elif not EMAIL_RE.match(email):
            flash("Please enter a valid e-mail address.")
        elif password != confirm:
            flash("Passwords do not match, please try again!")
        elif find_user_by_email(email, db=db):
            flash("That e-mail is already in use!")
        else:
            try:
                uid = create_user(db, name=name, email=email, password=password)
            except sqlite3.IntegrityError:
                db.rollback()
                flash("That e-mail is already in use!")
            else:
                _start_session(uid)
                app.logger.info("user %s registered", uid)
                flash("Registration successful!")
                return redirect(url_for("feed"))

    return render_template_string(
        TEMPL_REGISTER, title="Register", name=name, email=email
    )


TEMPL_REGISTER = wrap("""
{% block body %}
<hr>
<h2>Register</h2>
<form method="post">
  """ + TEMPL_CSRF + """
  <label for="name">Name</label>
  <input id="name" name="name" value="{{ name }}" required>
  <label for="email">E-mail</label>
  <input id="email" name="email" type="email" value="{{ email }}" autocomplete="username" required>
  <label for="password">Password</label>
  <input id="password" name="password" type="password" autocomplete="new-password" required>
  <label for="confirmpassword">Confirm password</label>
  <input id="confirmpassword" name="confirmpassword" type="password" autocomplete="new-password" required>
  <div><button type="submit">Create&nbsp;account</button></div>
</form>
{% endblock %}
""")


@app.route("/logout")
def logout():
    session.clear()
    return redirect(url_for("login"))


###############################################################################
# Request guards
###############################################################################
SAFE_METHODS = {"GET", "HEAD", "OPTIONS", "TRACE"}


@app.before_request
def csrf_protect():
    if request.method in SAFE_METHODS:
        return

    # anonymous forms (login / register) carry no token yet
    if not session.get("user_id"):
        return

    token = session.get("csrf", "")
    sent = request.form.get("csrf") or request.headers.get("X-CSRFToken", "")
    if not token or not secrets.compare_digest(token, sent):
        abort(403)


@app.after_request
def sec_headers(resp):
    resp.headers.update(
        {
            "X-Frame-Options": "DENY",
            "X-Content-Type-Options": "nosniff",
            "Referrer-Policy": "strict-origin-when-cross-origin",
        }
    )
    return resp


###############################################################################
# Feed + Dashboard
###############################################################################
@app.route("/")
@app.route("/toughts")
def feed():
    listing = compute_listing(
        request.args.get("search", ""),
        request.args.get("order"),
        request.args.get("page"),
        db=get_db(),
    )
    return render_template_string(
        TEMPL_FEED, listing=listing, title=SITE_NAME, kind="feed"
    )


TEMPL_FEED = wrap("""{% block body %}
    <hr>
    <form method="get" action="{{ url_for('feed') }}" style="display:flex;gap:.5rem;flex-wrap:wrap;">
        <input type="search" name="search" value="{{ listing.search }}"
               placeholder="Search toughts" aria-label="Search toughts" style="flex:1 1 12rem">
        <select name="order" aria-label="Order">
            <option value="new" {% if listing.order=='new' %}selected{% endif %}>Newest</option>
            <option value="old" {% if listing.order=='old' %}selected{% endif %}>Oldest</option>
        </select>
        <button>Search</button>
    </form>
    {% if listing.search %}
        <p><small>
        {% if listing.empty %}No{% else %}{{ listing.total }}{% endif %} tought{% if listing.total != 1 %}s{% endif %} matching “{{ listing.search }}”.
        <a href="{{ url_for('feed') }}">Clear</a>
        </small></p>
    {% endif %}
    {% for t in listing['items'] %}
    <article class="tought">
        <div>{{ t['title']|md }}</div>
        <small>
            by {{ t['author'] }} ·
            <time datetime="{{ t['created_at'] }}">{{ t['created_at']|ts }}</time>
        </small>
    </article>
    {% else %}
        {% if not listing.search %}<p>No toughts yet.</p>{% endif %}
    {% endfor %}
    {{ pagination_nav(pagination(listing.page, listing.total_pages, listing.search, listing.order)) }}
{% endblock %}
""")


@app.route("/toughts/dashboard")
@login_required
def dashboard():
    user = current_user()
    if user is None:
        session.clear()
        return redirect(url_for("login"))

    listing = compute_listing(
        "", ORDER_DEFAULT, request.args.get("page"), owner_id=user["id"], db=get_db()
    )
    return render_template_string(
        TEMPL_DASHBOARD,
        listing=listing,
        user=user,
        title="Dashboard",
        kind="dashboard",
    )


TEMPL_DASHBOARD = wrap("""{% block body %}
    <hr>
    <h2 style="margin-top:0">{{ user['name'] }}’s toughts</h2>
    <p><a href="{{ url_for('add_tought') }}">Write a new tought</a></p>
    {% for t in listing['items'] %}
    <article class="tought">
        <div>{{ t['title']|md }}</div>
        <small>
            <time datetime="{{ t['created_at'] }}">{{ t['created_at']|ts }}</time>
            &nbsp;<a href="{{ url_for('edit_tought', tought_id=t['id']) }}">Edit</a>
            <form method="post" action="{{ url_for('remove_tought') }}" class="inline-form">
                """ + TEMPL_CSRF + """
                <input type="hidden" name="id" value="{{ t['id'] }}">
                <button type="submit">Delete</button>
            </form>
        </small>
    </article>
    {% else %}
        <p>You have not written any toughts yet.</p>
    {% endfor %}
    {{ pagination_nav(pagination(listing.page, listing.total_pages)) }}
{% endblock %}
""")


###############################################################################
# Create / Edit / Remove
###############################################################################
def clean_title(raw: str | None) -> tuple[str, str | None]:
    """Return (title, error) – error is None when the title is usable."""
    title = (raw or "").strip()
    if not title:
        return title, "Title is required."
    if len(title) > TITLE_MAX:
        return title, f"Title must be at most {TITLE_MAX} characters."
    return title, None


def _form_id() -> int | None:
    try:
        return int(request.form.get("id", ""))
    except ValueError:
        return None


@app.route("/toughts/add", methods=["GET", "POST"])
@login_required
def add_tought():
    title = ""
    if request.method == "POST":
        title, error = clean_title(request.form.get("title"))
        if error:
            flash(error)
        else:
            db = get_db()
            now = now_iso()
            try:
                db.execute(
                    """INSERT INTO tought (title, user_id, created_at, updated_at)
                              VALUES (?,?,?,?)""",
                    (title, session["user_id"], now, now),
                )
                db.commit()
            except sqlite3.Error:
                db.rollback()
                app.logger.exception("creating tought failed")
                flash(MSG_WRITE_FAILED)
            else:
                flash("Tought created!")
                return redirect(url_for("dashboard"))

    return render_template_string(
        TEMPL_EDIT, tought=None, form_title=title, title="New tought", kind="add"
    )


@app.route("/toughts/edit/<int:tought_id>")
@login_required
def edit_tought(tought_id):
    tought = get_db().execute(
        "SELECT * FROM tought WHERE id=? AND user_id=?",
        (tought_id, session["user_id"]),
    ).fetchone()
    if tought is None:
        flash(MSG_NOT_PERMITTED)
        return redirect(url_for("dashboard"))

    return render_template_string(
        TEMPL_EDIT, tought=tought, form_title=tought["title"], title="Edit tought"
    )


@app.route("/toughts/edit", methods=["POST"])
@login_required
def edit_tought_save():
    tought_id = _form_id()
    if tought_id is None:
        flash(MSG_NOT_PERMITTED)
        return redirect(url_for("dashboard"))

    title, error = clean_title(request.form.get("title"))
    if error:
        flash(error)
        return render_template_string(
            TEMPL_EDIT,
            tought={"id": tought_id},
            form_title=title,
            title="Edit tought",
        )

    db = get_db()
    try:
        cur = db.execute(
            "UPDATE tought SET title=?, updated_at=? WHERE id=? AND user_id=?",
            (title, now_iso(), tought_id, session["user_id"]),
        )
        db.commit()
    except sqlite3.Error:
        db.rollback()
        app.logger.exception("updating tought %s failed", tought_id)
        flash(MSG_WRITE_FAILED)
        return redirect(url_for("dashboard"))

    flash("Tought updated!" if cur.rowcount else MSG_NOT_PERMITTED)
    return redirect(url_for("dashboard"))


TEMPL_EDIT = wrap("""{% block body %}
    <hr>
    <h2 style="margin-top:0">{% if tought %}Edit tought{% else %}New tought{% endif %}</h2>
    <form method="post"
          action="{% if tought %}{{ url_for('edit_tought_save') }}{% else %}{{ url_for('add_tought') }}{% endif %}">
        """ + TEMPL_CSRF + """
        {% if tought %}<input type="hidden" name="id" value="{{ tought['id'] }}">{% endif %}
        <label for="title">What are you thinking?</label>
        <textarea id="title" name="title" rows="3" maxlength="255" required>{{ form_title or '' }}</textarea>
        <div><button type="submit">{% if tought %}Save{% else %}Post{% endif %}</button></div>
    </form>
{% endblock %}
""")


@app.route("/toughts/remove", methods=["POST"])
@login_required
def remove_tought():
    tought_id = _form_id()
    if tought_id is None:
        flash(MSG_NOT_PERMITTED)
        return redirect(url_for("dashboard"))

    db = get_db()
    try:
        cur = db.execute(
            "DELETE FROM tought WHERE id=? AND user_id=?",
            (tought_id, session["user_id"]),
        )
        db.commit()
    except sqlite3.Error:
        db.rollback()
        app.logger.exception("removing tought %s failed", tought_id)
        flash(MSG_WRITE_FAILED)
        return redirect(url_for("dashboard"))

    flash("Tought removed!" if cur.rowcount else MSG_NOT_PERMITTED)
    return redirect(url_for("dashboard"))


###############################################################################
# Error pages
###############################################################################
@app.errorhandler(404)
def not_found(exc):
    """Site-wide “Not Found” page."""
    return render_template_string(TEMPL_404, title=SITE_NAME), 404


@app.errorhandler(500)
def internal_error(exc):
    """
    Generic 500 page for production.
    • With debug on, Flask bypasses this handler and shows the traceback.
    """
    return render_template_string(TEMPL_500, title=SITE_NAME), 500


TEMPL_404 = wrap("""
{% block body %}
  <hr>
  <h2 style="margin-top:0">Page not found</h2>
  <p>The URL you asked for doesn’t exist.
     <a href="{{ url_for('feed') }}">Back to the feed</a>.</p>
{% endblock %}
""")

TEMPL_500 = wrap("""
{% block body %}
  <hr>
  <h2 style="margin-top:0">Internal Server Error</h2>
  <p>Our fault, not yours. Please try again in a minute.</p>
{% endblock %}
""")


###############################################################################
# main
###############################################################################
if __name__ == "__main__":
    with app.app_context():
        init_db()
    app.run(debug=True)
