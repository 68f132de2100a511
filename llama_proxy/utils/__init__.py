import httpx


def mask_password(url: httpx.URL) -> str:
    """Render a URL for logs with any embedded password masked."""
    if not url.password:
        return str(url)
    return str(url.copy_with(username=url.username, password="****"))
