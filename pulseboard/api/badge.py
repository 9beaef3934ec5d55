"""Shields-style SVG status badge."""

from __future__ import annotations

from html import escape

GREEN = "#22c55e"
RED = "#ef4444"
GREY = "#6b7280"

_TEMPLATE = """<svg xmlns="http://www.w3.org/2000/svg" width="{total}" height="20">
  <linearGradient id="b" x2="0" y2="100%">
    <stop offset="0" stop-color="#bbb" stop-opacity=".1"/>
    <stop offset="1" stop-opacity=".1"/>
  </linearGradient>
  <mask id="a">
    <rect width="{total}" height="20" rx="3" fill="#fff"/>
  </mask>
  <g mask="url(#a)">
    <path fill="#555" d="M0 0h{lw}v20H0z"/>
    <path fill="{color}" d="M{lw} 0h{mw}v20H{lw}z"/>
    <path fill="url(#b)" d="M0 0h{total}v20H0z"/>
  </g>
  <g fill="#fff" text-anchor="middle" font-family="DejaVu Sans,Verdana,Geneva,sans-serif" font-size="11">
    <text x="{lx}" y="15" fill="#010101" fill-opacity=".3">{label}</text>
    <text x="{lx}" y="14">{label}</text>
    <text x="{mx}" y="15" fill="#010101" fill-opacity=".3">{message}</text>
    <text x="{mx}" y="14">{message}</text>
  </g>
</svg>"""


def render_badge(label: str, message: str, color: str) -> str:
    # ~7px per character at 11px Verdana, plus padding
    lw = len(label) * 7 + 10
    mw = len(message) * 7 + 10
    return _TEMPLATE.format(
        total=lw + mw, lw=lw, mw=mw, color=color,
        lx=lw // 2, mx=lw + mw // 2,
        label=escape(label), message=escape(message),
    )


def status_badge(up: bool, uptime: float) -> str:
    if up:
        return render_badge("status", f"up {uptime:.1f}%", GREEN)
    return render_badge("status", "down", RED)


def not_found_badge() -> str:
    return render_badge("unknown", "not found", GREY)
