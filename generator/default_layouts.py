"""Layouts used when the site's layouts directory does not provide one."""

BASE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <title>{% block title %}{{ site.title }}{% endblock %}</title>
</head>
<body>
{%- set main_menu = menus.get("main", ()) %}
{%- if main_menu %}
    <nav class="menu menu--main">
        <ul>
        {%- for entry in main_menu %}
            <li><a href="{{ root }}{{ entry.slug }}.html">
                {%- if entry.icon %}<span class="icon icon-{{ entry.icon }}"></span>{% endif -%}
                {{ entry.title }}</a></li>
        {%- endfor %}
        </ul>
    </nav>
{%- endif %}
    <main>
{% block main %}{% endblock %}
    </main>
</body>
</html>
"""

PAGE = """{% extends "base.html" %}
{% block title %}{{ page.title }} | {{ site.title }}{% endblock %}
{% block main %}
<article class="page" data-slug="{{ page.slug }}">
    {%- if body_title != page.title %}
    <h1>{{ page.title }}</h1>
    {%- endif %}
{{ content }}
</article>
{% endblock %}
"""

POST = """{% extends "base.html" %}
{% block title %}{{ page.title }} | {{ site.title }}{% endblock %}
{% block main %}
<article class="post" data-slug="{{ page.slug }}" data-comments="{{ 'on' if page.comments else 'off' }}">
    <header>
        {%- if body_title != page.title %}
        <h1>{{ page.title }}</h1>
        {%- endif %}
        {%- if page.date %}
        <time datetime="{{ page.date.isoformat() }}">{{ page.date.strftime("%Y-%m-%d") }}</time>
        {%- endif %}
        {%- if page.categories %}
        <ul class="categories">
            {%- for label in page.categories %}
            <li><a href="{{ root }}categories/{{ label | category_slug }}.html">{{ label }}</a></li>
            {%- endfor %}
        </ul>
        {%- endif %}
    </header>
{{ content }}
</article>
{% endblock %}
"""

LIST = """{% extends "base.html" %}
{% block main %}
<section class="listing">
    <h1>{{ heading or site.title }}</h1>
    <ul>
    {%- for item in pages %}
        <li><a href="{{ root }}{{ item.slug }}.html">{{ item.title }}</a>
            {%- if item.date %} <time datetime="{{ item.date.isoformat() }}">{{ item.date.strftime("%Y-%m-%d") }}</time>{% endif %}</li>
    {%- endfor %}
    </ul>
</section>
{% endblock %}
"""

CATEGORY = """{% extends "list.html" %}
{% block title %}{{ heading }} | {{ site.title }}{% endblock %}
"""

CATEGORIES = """{% extends "base.html" %}
{% block title %}Categories | {{ site.title }}{% endblock %}
{% block main %}
<section class="categories">
    <h1>Categories</h1>
    <ul>
    {%- for label, pages in categories.items() %}
        <li><a href="{{ root }}categories/{{ label | category_slug }}.html">{{ label }}</a> ({{ pages | length }})</li>
    {%- endfor %}
    </ul>
</section>
{% endblock %}
"""

DEFAULT_LAYOUTS = {
    "base.html": BASE,
    "page.html": PAGE,
    "post.html": POST,
    "list.html": LIST,
    "category.html": CATEGORY,
    "categories.html": CATEGORIES,
}
