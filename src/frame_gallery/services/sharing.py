"""Share links, social previews and cast text."""

import json
from dataclasses import dataclass
from html import escape
from urllib.parse import quote

_CRAWLER_MARKERS = (
    "facebookexternalhit",
    "facebot",
    "twitterbot",
    "slackbot",
    "discordbot",
    "linkedinbot",
    "telegrambot",
    "whatsapp",
    "embedly",
    "pinterest",
    "redditbot",
    "skypeuripreview",
    "farcaster",
    "warpcast",
    "bot",
    "crawler",
    "spider",
    "preview",
)

_MAX_CAST_DESCRIPTION = 100
SITE_NAME = "FrameTheGallery"


@dataclass(frozen=True)
class ShareLink:
    """Everything a caller needs to share one portfolio."""

    url: str
    text: str
    embed_image: str | None
    pushed_to_cloud: bool = True


def is_social_crawler(user_agent: str | None) -> bool:
    """Return true when the User-Agent looks like a link-preview crawler."""
    if not user_agent:
        return False
    lowered = user_agent.lower()
    return any(marker in lowered for marker in _CRAWLER_MARKERS)


def app_portfolio_url(base_url: str, user_id: str, portfolio_id: str) -> str:
    """Return the in-app URL that opens a shared portfolio."""
    param = quote(f"{user_id}_{portfolio_id}", safe="")
    return f"{base_url.rstrip('/')}/?portfolio={param}&miniApp=true"


def share_endpoint_url(base_url: str, user_id: str, portfolio_id: str) -> str:
    """Return the public share URL served by the API."""
    return (
        f"{base_url.rstrip('/')}/api/share/"
        f"{quote(user_id, safe='')}/{quote(portfolio_id, safe='')}"
    )


def preview_image(portfolio: dict[str, object], default_image: str) -> str:
    """Pick the first remotely hosted photo as the preview image."""
    photos = portfolio.get("photos")
    if isinstance(photos, list):
        for photo in photos:
            if not isinstance(photo, dict):
                continue
            src = str(photo.get("cloudUrl") or photo.get("src") or "")
            if src.startswith(("http://", "https://")):
                return src
    return default_image


def build_cast_text(
    title: str, description: str, photo_count: int, share_url: str
) -> str:
    """Compose the text posted alongside a shared portfolio link."""
    lines = [f'📸 "{title}"', ""]
    if description:
        if len(description) > _MAX_CAST_DESCRIPTION:
            description = description[:_MAX_CAST_DESCRIPTION] + "..."
        lines.extend([description, ""])
    noun = "photo" if photo_count == 1 else "photos"
    lines.extend(
        [
            f"{photo_count} {noun} • Created with {SITE_NAME}",
            "",
            f"View portfolio: {share_url}",
        ]
    )
    return "\n".join(lines)


def render_share_page(
    portfolio: dict[str, object],
    app_url: str,
    default_image: str,
) -> str:
    """Render the HTML page that social crawlers read for link previews."""
    title = str(portfolio.get("title") or "Portfolio")
    photos = portfolio.get("photos")
    photo_count = len(photos) if isinstance(photos, list) else 0
    description = f"{photo_count} photos • Created with {SITE_NAME}"
    image = preview_image(portfolio, default_image)
    miniapp = json.dumps(
        {
            "version": "1",
            "imageUrl": image,
            "button": {
                "title": f"📸 View {title}",
                "action": {
                    "type": "launch_miniapp",
                    "url": app_url,
                    "name": SITE_NAME,
                },
            },
        },
        ensure_ascii=False,
    )
    return _SHARE_PAGE_HTML.format(
        title=escape(title),
        description=escape(description),
        image=escape(image),
        url=escape(app_url),
        site=SITE_NAME,
        miniapp=escape(miniapp),
    )


_SHARE_PAGE_HTML = """<!DOCTYPE html>
<html lang="en">
  <head>
    <meta charset="UTF-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1.0" />
    <title>{title} - {site}</title>
    <meta name="description" content="{description}" />
    <meta property="og:url" content="{url}" />
    <meta property="og:title" content="{title} - {site}" />
    <meta property="og:description" content="{description}" />
    <meta property="og:image" content="{image}" />
    <meta property="og:type" content="website" />
    <meta property="og:site_name" content="{site}" />
    <meta name="twitter:card" content="summary_large_image" />
    <meta name="twitter:title" content="{title} - {site}" />
    <meta name="twitter:description" content="{description}" />
    <meta name="twitter:image" content="{image}" />
    <meta property="fc:frame" content="vNext" />
    <meta property="fc:frame:image" content="{image}" />
    <meta property="fc:frame:button:1" content="View Gallery" />
    <meta property="fc:frame:button:1:action" content="link" />
    <meta property="fc:frame:button:1:target" content="{url}" />
    <meta name="fc:miniapp" content="{miniapp}" />
  </head>
  <body>
    <h1>{title}</h1>
    <p>{description}</p>
    <p><a href="{url}">Open the gallery</a></p>
  </body>
</html>
"""
