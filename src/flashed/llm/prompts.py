"""
Prompt builders for style decisions, variant generation, site pages and refinement.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from ..config import BrandKit

HOME_EXCERPT_CHARS = 4000
HTML_PREVIEW_MAX_LENGTH = 8000

IMAGE_INSTRUCTION = (
    "Use `https://image.pollinations.ai/prompt/{description}?width={w}&height={h}&nologo=true` "
    "for realistic photos/illustrations."
)


@dataclass(frozen=True)
class VariationDirection:
    """A fixed redesign direction used when asking for alternative takes on one design."""
    name: str
    focus: str


VARIATION_DIRECTIONS = (
    VariationDirection(
        name="Typography & Layout",
        focus="Focus on bold typography choices, creative text hierarchy, and an innovative layout structure. "
        "Use interesting font pairings and whitespace.",
    ),
    VariationDirection(
        name="Color & Depth",
        focus="Focus on a striking color palette, gradients, shadows, and visual depth. "
        "Create dimension through layering and color contrast.",
    ),
    VariationDirection(
        name="Different Vibe",
        focus="Take a completely different stylistic direction. If the original is corporate, make it playful. "
        "If minimal, make it bold. Surprise the user.",
    ),
)


def build_style_prompt(prompt: str, count: int, *, url: Optional[str] = None, has_image: bool = False) -> str:
    """Phase 1: ask for `count` distinct style descriptors as a raw JSON array."""
    lines = [
        "You are an expert Design Strategist.",
        f'Client Request: "{prompt}".',
    ]
    if url:
        lines.append(f"Context URL: {url}.")
    if has_image:
        lines.append("Context Image: Attached.")
    lines.extend(
        [
            "",
            "**TASK:**",
            f"Analyze the request and determine the {count} most effective and DISTINCT visual styles for this specific use case.",
            'Do NOT default to "Luxury" or "SaaS" unless the request specifically fits that.',
            "Think broad: Retro, Brutalist, Playful, Corporate, Minimalist, Industrial, Nature-inspired, etc.",
            "",
            "**EXAMPLES:**",
            '- If "Kindergarten": ["Playful Storybook", "Soft Rounded Pastel", "Bright & Bouncy"]',
            '- If "Law Firm": ["Trustworthy Serif", "High-Contrast Corporate", "Traditional Navy"]',
            '- If "Dashboard": ["Linear Dark Mode", "Clean Light Glass", "Data-Dense Industrial"]',
            "",
            f"Return ONLY a raw JSON array of {count} strings describing the specific vibes.",
        ]
    )
    return "\n".join(lines)


def build_site_style_prompt(prompt: str, *, url: Optional[str] = None) -> str:
    """Ask for one cohesive style shared by every page of a site."""
    context = f"Context URL: {url}.\n" if url else ""
    return (
        "You are an expert Design Strategist.\n"
        f'Client Request: "{prompt}" (Multi-page website).\n'
        f"{context}\n"
        "Determine ONE cohesive visual style for this website.\n"
        "Consider: typography, color scheme, layout philosophy, visual elements.\n\n"
        'Return ONLY a single string describing the style (e.g., "Modern Minimalist with Bold Typography" '
        'or "Warm Corporate with Soft Gradients").'
    )


def build_brand_kit_block(brand_kit: Optional[BrandKit]) -> str:
    if brand_kit is None:
        return ""
    lines = [
        "**BRAND KIT (MUST USE THESE):**",
        f"- Primary Color: {brand_kit.primary_color}",
        f"- Secondary Color: {brand_kit.secondary_color}",
        f"- Accent Color: {brand_kit.accent_color}",
        f"- Font Family: '{brand_kit.font_family}' (import from Google Fonts)",
    ]
    if brand_kit.logo_url:
        lines.append(f"- Logo URL: {brand_kit.logo_url}")
    return "\n".join(lines)


def build_variant_prompt(
    prompt: str,
    style: str,
    *,
    url: Optional[str] = None,
    has_image: bool = False,
    brand_kit: Optional[BrandKit] = None,
    clone: bool = False,
) -> str:
    """
    Phase 2: full single-page document in one style.

    Clone mode (only when a reference URL or image is present) asks for close
    replication of the reference layout instead of a free design.
    """
    if clone and (url or has_image):
        return _build_clone_prompt(prompt, url=url, brand_kit=brand_kit)

    brand_block = build_brand_kit_block(brand_kit)
    context_lines = []
    if url:
        context_lines.append(f"Client URL: {url}. Search it.")
    if has_image:
        context_lines.append("Refer to the attached image for color palette and visual tone.")
    if brand_block:
        context_lines.append(brand_block)

    if brand_kit:
        typography = f"Use '{brand_kit.font_family}' as the primary font. Import it from Google Fonts."
        color = (
            f"Use the brand kit colors: primary ({brand_kit.primary_color}), secondary "
            f"({brand_kit.secondary_color}), and accent ({brand_kit.accent_color})."
        )
    else:
        typography = (
            f"Choose a Google Font that PERFECTLY fits the '{style}' style. Import it in the CSS. "
            "Do NOT default to Inter unless it fits."
        )
        color = f"Strictly follow the '{style}' vibe."

    return "\n".join(
        [
            "You are a World-Class Frontend Engineer.",
            f'Build a COMPLETE, Single Page Website for: "{prompt}".',
            "",
            "**CONTEXT:**",
            *context_lines,
            "",
            f"**TARGET STYLE:** {style}",
            "",
            "**DESIGN INSTRUCTIONS:**",
            f"1.  **Typography:** {typography}",
            f'2.  **Layout & Structure:** Create a layout that makes sense for a "{prompt}".',
            "    - If it's a Landing Page, use sections like Hero, Features, CTA.",
            "    - If it's a Dashboard, use a Sidebar, Header, and Data Cards.",
            "    - If it's a Blog, use a Grid of Articles.",
            "    - If it's a Restaurant, use a Menu section and Gallery.",
            "3.  **Visuals:**",
            "    - Use CSS for creative backgrounds/shapes matching the style.",
            f"    - **IMAGES:** {IMAGE_INSTRUCTION}",
            f"4.  **Color:** {color}",
            "",
            "**TECHNICAL:**",
            "- Mobile Responsive.",
            "- Flexbox/Grid.",
            "- Self-contained HTML/CSS.",
            "",
            "Return ONLY RAW HTML.",
        ]
    )


def _build_clone_prompt(prompt: str, *, url: Optional[str], brand_kit: Optional[BrandKit]) -> str:
    reference = f"website at {url}" if url else "image provided"
    if brand_kit:
        colors = (
            f"Use brand kit colors instead: primary ({brand_kit.primary_color}), secondary "
            f"({brand_kit.secondary_color}), accent ({brand_kit.accent_color})"
        )
    else:
        colors = "Match the original color scheme closely."
    return "\n".join(
        [
            "You are a World-Class Frontend Engineer specializing in pixel-perfect recreations.",
            "",
            f"**TASK:** Replicate the layout and structure of the reference {reference}.",
            f'**NEW CONTENT:** "{prompt}"',
            "",
            "**CLONE INSTRUCTIONS:**",
            "1. **Structure:** Match the EXACT layout structure - same sections, same arrangement, same proportions.",
            "2. **Typography:** Use the same or very similar fonts. Match font sizes and weights.",
            "3. **Spacing:** Match padding, margins, and gaps as closely as possible.",
            f"4. **Colors:** {colors}",
            "5. **Components:** Recreate the same UI components (buttons, cards, navigation style).",
            f'6. **Content:** Replace text/images with content relevant to "{prompt}".',
            build_brand_kit_block(brand_kit),
            "",
            f"**IMAGES:** {IMAGE_INSTRUCTION}",
            "",
            "**OUTPUT:** Return ONLY the complete, self-contained HTML with embedded CSS. Mobile responsive.",
        ]
    )


def format_page_list(pages: Sequence[tuple[str, str]]) -> str:
    """Render (name, slug) pairs as the bullet list embedded in site prompts."""
    return "\n".join(f"- {name} (/{slug})" for name, slug in pages)


def build_site_page_prompt(
    prompt: str,
    style: str,
    *,
    page_name: str,
    page_slug: str,
    is_home: bool,
    pages: Sequence[tuple[str, str]],
    brand_kit: Optional[BrandKit] = None,
    home_html: Optional[str] = None,
) -> str:
    """
    One page of a multi-page site.

    Inner pages embed an excerpt of the finished home page so they copy its styling.
    """
    nav_links = ", ".join(f'"/{slug}"' for _, slug in pages)
    if is_home:
        content_rule = "Create a compelling homepage with hero section, features, and call-to-action"
    else:
        content_rule = f"Create appropriate content for a {page_name} page"

    lines = [
        "You are a World-Class Frontend Engineer building a multi-page website.",
        f'Website: "{prompt}"',
        f'Style: "{style}"',
        build_brand_kit_block(brand_kit),
        "",
        f"**PAGE TO BUILD:** {page_name} ({'Homepage' if is_home else 'Inner page'})",
        f"**URL:** /{page_slug}",
        "",
        "**ALL PAGES IN THIS SITE:**",
        format_page_list(pages),
        "",
    ]
    if not is_home and home_html:
        lines.extend(
            [
                "**STYLE REFERENCE (match this exactly):**",
                "```html",
                home_html[:HOME_EXCERPT_CHARS],
                "```",
                "",
            ]
        )
    lines.extend(
        [
            "**REQUIREMENTS:**",
            f"1. Include a consistent navigation bar with links to ALL pages (use relative links: {nav_links})",
            f"2. {content_rule}",
            "3. Mobile responsive with Flexbox/Grid",
            "4. Self-contained HTML with embedded CSS",
            "5. Consistent styling across all pages",
            "",
            f"**IMAGES:** {IMAGE_INSTRUCTION}",
            "",
            "Return ONLY RAW HTML.",
        ]
    )
    return "\n".join(lines)


def build_refine_prompt(html: str, instruction: str) -> str:
    return "\n".join(
        [
            "You are an Expert UI Refiner.",
            "",
            "**CURRENT DESIGN:**",
            "```html",
            html,
            "```",
            "",
            f'**REFINEMENT REQUEST:** "{instruction}"',
            "",
            "**TASK:**",
            "Apply the refinement request to the current design. Make focused, targeted changes that address "
            "the request while preserving the overall structure and content.",
            "",
            "**GUIDELINES:**",
            "1. Keep all existing content (text, images, sections) unless specifically asked to remove them",
            "2. Maintain the general layout structure unless the request asks to change it",
            "3. Focus your changes on what was specifically requested",
            "4. Ensure the design remains mobile-responsive",
            "5. Keep all CSS in a <style> tag in the <head>",
            "",
            "**OUTPUT:**",
            "Return ONLY the complete, updated HTML. No explanations or markdown code blocks.",
        ]
    )


def build_variation_prompt(prompt: str, html: str, direction: VariationDirection) -> str:
    excerpt = html[:HTML_PREVIEW_MAX_LENGTH]
    if len(html) > HTML_PREVIEW_MAX_LENGTH:
        excerpt += "..."
    return "\n".join(
        [
            "You are a World-Class Frontend Engineer.",
            f'Create a variation of this design: "{prompt}".',
            "",
            f"**STYLE DIRECTION:** {direction.name}",
            direction.focus,
            "",
            "**CURRENT HTML TO REDESIGN:**",
            "```html",
            excerpt,
            "```",
            "",
            "**INSTRUCTIONS:**",
            "- Keep the same content and sections but apply a dramatically different visual style",
            "- Make it mobile responsive",
            "- Use CSS in a <style> tag",
            "- Choose appropriate Google Fonts for this style",
            "",
            "Return ONLY the complete HTML. No explanations or markdown code blocks.",
        ]
    )
