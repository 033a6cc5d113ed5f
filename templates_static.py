"""Templates and static file generation."""

from pathlib import Path

# Template content
BASE_HTML = """<!doctype html>
<html>
<head>
  <meta charset="utf-8" />
  <meta name="viewport" content="width=device-width, initial-scale=1" />
  <title>{{ title or 'Photo Gallery' }}</title>
  <link rel="stylesheet" href="/static/app.css?v={{ cache_breaker }}">
</head>
<body>
  <header class="topbar">
    <nav>
      <a href="/" class="brand">📷 {{ site_title }}</a>
      {% if authenticated %}<a href="/logout" class="logout">Log out</a>{% endif %}
    </nav>
  </header>
  <main class="container">
    {% block content %}{% endblock %}
  </main>
</body>
</html>
"""

LOGIN_HTML = """{% extends 'base.html' %}
{% block content %}
<form class="login" method="post" action="/login">
  <h1>{{ site_title }}</h1>
  {% if error %}<div class="flash error">{{ error }}</div>{% endif %}
  <label>Password
    <input type="password" name="password" autofocus required />
  </label>
  <button>Enter</button>
</form>
{% endblock %}
"""

GALLERY_HTML = """{% extends 'base.html' %}
{% block content %}
<section class="upload">
  <h2>Upload photos</h2>
  <form method="post" action="/upload" enctype="multipart/form-data">
    <div class="row">
      <input name="uploader_name" placeholder="Your name" />
      <input name="event_name" placeholder="Event" list="event-list" />
      <datalist id="event-list">
        {% for e in events %}<option value="{{ e }}">{% endfor %}
      </datalist>
    </div>
    <input type="file" name="photos" accept="image/jpeg,image/png,image/gif,image/webp" multiple required />
    <button>Upload</button>
  </form>
</section>

<section class="controls">
  <form class="filters" method="get" action="/">
    <select name="event">
      <option value="">All events</option>
      {% for e in events %}
      <option value="{{ e }}" {% if e == selected_event %}selected{% endif %}>{{ e }}</option>
      {% endfor %}
    </select>
    <select name="uploader">
      <option value="">All uploaders</option>
      {% for u in uploaders %}
      <option value="{{ u }}" {% if u == selected_uploader %}selected{% endif %}>{{ u }}</option>
      {% endfor %}
    </select>
    <button>Filter</button>
    {% if selected_event or selected_uploader %}<a href="/">Clear</a>{% endif %}
  </form>
  <div class="summary">
    <span class="muted">Showing {{ filtered_count }} of {{ total_count }} photos</span>
    {% if filtered_count %}
    <a class="download-link" href="{{ download_url }}">Download {{ filtered_count }} as ZIP</a>
    {% endif %}
  </div>
</section>

{% if photos %}
<div class="grid">
  {% for p in photos %}
  <a class="card" href="/uploads/{{ p.filename | urlencode }}" target="_blank">
    <img loading="lazy" src="/thumbnails/{{ p.filename | urlencode }}" alt="{{ p.filename }}" />
    <div class="meta">
      <span class="fn">{{ p.filename }}</span>
      <span class="muted">{{ p.uploader_name }}{% if p.event_name %} · {{ p.event_name }}{% endif %}</span>
      <span class="muted">{{ (p.photo_time or p.upload_time) | datetime }}</span>
    </div>
  </a>
  {% endfor %}
</div>
{% else %}
<p class="muted">No photos yet.</p>
{% endif %}
{% endblock %}
"""

APP_CSS = """:root{--bg:#0f1115;--fg:#e5e7eb;--muted:#a1a1aa;--card:#111318;--brand:#7aa2ff;--danger:#ff5c5c}
*{box-sizing:border-box}body{margin:0;background:var(--bg);color:var(--fg);font:15px/1.45 system-ui,-apple-system,Segoe UI,Roboto,Inter,Ubuntu,Helvetica,Arial}
a{color:var(--brand);text-decoration:none}.muted{color:var(--muted)}
.topbar{position:sticky;top:0;background:#0c0e13;border-bottom:1px solid #1c1f26;z-index:10}
.topbar nav{margin:auto;display:flex;gap:14px;align-items:center;padding:10px}
.topbar .brand{font-weight:700}.topbar .logout{margin-left:auto}
.container{margin:20px auto;padding:0 14px;max-width:1400px}
.upload,.controls{background:var(--card);border:1px solid #1f2430;border-radius:12px;padding:16px;margin-bottom:20px;display:flex;flex-direction:column;gap:10px}
.upload h2{margin:0}.row{display:flex;gap:10px}
.filters{display:flex;align-items:center;gap:10px}
.summary{display:flex;justify-content:space-between;align-items:center;gap:10px}
.download-link{background:var(--brand);color:white;padding:6px 12px;border-radius:6px}
.grid{display:grid;grid-template-columns:repeat(auto-fill,minmax(220px,1fr));gap:14px}
.card{background:var(--card);border:1px solid #1f2430;border-radius:12px;overflow:hidden;display:flex;flex-direction:column;color:var(--fg)}
.card img{width:100%;height:220px;object-fit:cover;display:block;background:#090a0d}
.card .meta{padding:10px;display:flex;flex-direction:column;gap:4px}
.fn{white-space:nowrap;overflow:hidden;text-overflow:ellipsis}
button{cursor:pointer;background:#1e2635;border:1px solid #2f3748;color:var(--fg);padding:6px 12px;border-radius:8px}
input,select{background:#0e1218;border:1px solid #232a39;color:var(--fg);padding:6px 10px;border-radius:8px;width:100%}
.login{max-width:360px;margin:80px auto;display:flex;flex-direction:column;gap:12px}
.flash{padding:10px;border-radius:10px}.flash.error{background:#2d1b1b;border:1px solid #ef4444;color:#f87171}
@media (max-width:768px){.filters,.row{flex-direction:column;align-items:stretch}}
"""


def ensure_assets(templates_dir: Path, static_dir: Path) -> None:
    """Create templates/static on first run so the app is standalone."""
    templates_dir.mkdir(parents=True, exist_ok=True)
    static_dir.mkdir(parents=True, exist_ok=True)
    files = {
        templates_dir / "base.html": BASE_HTML,
        templates_dir / "login.html": LOGIN_HTML,
        templates_dir / "gallery.html": GALLERY_HTML,
        static_dir / "app.css": APP_CSS,
    }
    for p, content in files.items():
        if not p.exists():
            p.write_text(content, encoding="utf-8")
