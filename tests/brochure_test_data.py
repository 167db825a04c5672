"""Brochure template test data

Minimal template pages used across the Brochure Engine tests: a complete document with head/body,
bare fragments, and two templates sharing class names to check CSS scoping."""

# ===== Complete document =====

COMPLETE_DOCUMENT = """<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="UTF-8">
<title>Cover</title>
<link rel="stylesheet" href="https://fonts.example.com/cover.css">
<style>.title{color:red}</style>
</head>
<body>
<header class="page-header"><h1 class="title">Spring Catalogue</h1></header>
<div id="hero"><img src="images/hero.jpg" alt="Hero"><a class="cta">Shop</a><a class="cta">Learn more</a></div>
<footer><p>Contact us</p></footer>
</body>
</html>"""

# ===== Fragments =====

HERO_FRAGMENT = (
    '<div id="hero"><a class="cta" href="#buy">Buy</a><a class="cta" href="#more">More</a></div>'
)

MIXED_SIBLINGS_FRAGMENT = (
    '<div class="intro"><h1>Hi</h1><a class="cta">Buy</a><a class="cta">More</a></div>'
)

NESTED_LISTS_FRAGMENT = (
    '<div><ul class="a"><li>A1</li><li>A2</li></ul><ul class="b"><li>B1</li><li>B2</li></ul></div>'
)

PRODUCT_FRAGMENT = (
    "<style>.title{color:red}</style>"
    '<section class="products"><h2 class="title">Products</h2>'
    "<p>First</p><p>Second</p>"
    '<div class="card"><img src="a.jpg"><p>Card A</p></div>'
    '<div class="card"><img src="b.jpg"><p>Card B</p></div>'
    "</section>"
)

STYLED_FRAGMENT = (
    "<style>\n"
    "body { margin: 0 }\n"
    ".title{color:red}\n"
    "@media print { .title { color: black } }\n"
    "@font-face { font-family: Brand; src: url(brand.woff2) }\n"
    ":root { --brand: #123456 }\n"
    "</style>"
    '<div class="wrapper"><h1 class="title">Styled</h1></div>'
)

SECTION_FRAGMENT = (
    '<div class="page">'
    '<header><h1>Header title</h1></header>'
    '<main class="content"><div class="box"><p>Body copy</p></div></main>'
    '<footer class="page-footer"><p>Footer note</p></footer>'
    "</div>"
)

DATA_ATTRIBUTE_FRAGMENT = (
    '<ul><li data-item="one">One</li><li data-item="two">Two</li></ul>'
)

# ===== Template library layout =====

# template name -> {file name: markup}
LIBRARY = {
    "spring": {
        "page-1-cover.html": COMPLETE_DOCUMENT,
        "page-2-products.html": PRODUCT_FRAGMENT,
    },
    "minimal": {
        "page-1-hero.html": HERO_FRAGMENT,
    },
}

SPRING_METADATA = {
    "name": "Spring",
    "category": "catalogue",
    "version": "1.2",
    "pages": ["page-1-cover.html", "page-2-products.html"],
}


def write_library(root):
    """Write LIBRARY under root/<template>/pages/ and return the templates folder."""
    import json

    for template_name, pages in LIBRARY.items():
        pages_dir = root / template_name / "pages"
        pages_dir.mkdir(parents=True, exist_ok=True)
        for filename, markup in pages.items():
            (pages_dir / filename).write_text(markup, encoding="utf-8")
    (root / "spring" / "metadata.json").write_text(json.dumps(SPRING_METADATA), encoding="utf-8")
    return root
