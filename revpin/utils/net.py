"""网络工具: URL 安全校验与远程探测"""

from __future__ import annotations

import logging
import urllib.error
import urllib.request
from urllib.parse import urlparse

from revpin.core.exceptions import NetworkError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))

# 探测响应最大读取字节数，meta 标签只会出现在 <head> 中
MAX_PROBE_BYTES = 512 * 1024


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https

    Raises:
        NetworkError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise NetworkError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，仅支持 http/https: {url}"
        )


def fetch_text(url: str, *, timeout: float = 30.0) -> str:
    """GET 请求并以文本返回响应体

    Raises:
        NetworkError: 协议不合法、连接失败或 HTTP 错误
    """
    validate_url_scheme(url, context="probe")
    logger.debug("探测: %s", url)
    try:
        with urllib.request.urlopen(url, timeout=timeout) as resp:  # nosec B310
            charset = resp.headers.get_content_charset() or "utf-8"
            return resp.read(MAX_PROBE_BYTES).decode(charset, errors="replace")
    except urllib.error.HTTPError as e:
        raise NetworkError(f"请求失败: {url} - HTTP {e.code}") from e
    except (urllib.error.URLError, OSError) as e:
        raise NetworkError(f"请求失败: {url} - {e}") from e
