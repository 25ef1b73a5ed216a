import os

DEFAULT_CONTENT_TYPE = "application/octet-stream"

# Extensionless files (index pages and the like) are served as HTML.
NO_EXTENSION_CONTENT_TYPE = "text/html"

CONTENT_TYPES = {
    # Text formats
    '.txt': 'text/plain', '.log': 'text/plain', '.md': 'text/plain', '.csv': 'text/csv',

    # Code & markup
    '.html': 'text/html', '.htm': 'text/html', '.css': 'text/css',
    '.js': 'application/javascript', '.json': 'application/json', '.xml': 'application/xml',

    # Images
    '.png': 'image/png', '.jpg': 'image/jpeg', '.jpeg': 'image/jpeg', '.gif': 'image/gif',
    '.svg': 'image/svg+xml', '.webp': 'image/webp', '.ico': 'image/x-icon',

    # Media
    '.mp4': 'video/mp4', '.webm': 'video/webm', '.mp3': 'audio/mp3', '.wav': 'audio/wav',

    # Docs & archives
    '.pdf': 'application/pdf', '.zip': 'application/zip', '.tar': 'application/x-tar',
    '.gz': 'application/gzip',
}


def resolve_content_type(file_path):
    """Map the extension of ``file_path`` to a MIME type. Case-sensitive."""
    ext = os.path.splitext(os.path.basename(file_path))[1]
    if not ext:
        return NO_EXTENSION_CONTENT_TYPE
    return CONTENT_TYPES.get(ext, DEFAULT_CONTENT_TYPE)
