from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from agents.base import JSON_ONLY, Agent
from core.schema import str_list
from core.types import KeywordsResult, SEOAnalysisResult, SEOResult

SEO_INSTRUCTIONS = f"""
You are an expert SEO optimization agent. Analyze HTML and optimize it for search
engines and social media.

{JSON_ONLY}

Your response MUST have this exact structure:
{{
  "analysis": "Brief analysis of the current SEO status",
  "optimizedHtml": "The fully optimized HTML code",
  "changes": ["List of specific changes made"],
  "seoScore": 85,
  "recommendations": ["Additional recommendations for further optimization"]
}}

When optimizing HTML you MUST:
1. Meta tags: <title> of 50-60 characters with the primary keyword, meta description
   (150-160 characters), keywords, viewport, charset UTF-8, robots, canonical URL, author.
2. Open Graph: og:title, og:description, og:image (1200x630), og:url, og:type, og:site_name.
3. Twitter Cards: twitter:card (summary_large_image), title, description, image, site, creator.
4. Schema.org JSON-LD in <head> matching the content type.
5. Descriptive alt text on ALL images; loading="lazy" below the fold.
6. One h1 with the primary keyword, a proper heading hierarchy and semantic elements.
7. lang attribute on <html>, rel="noopener noreferrer" on external links, theme-color, favicon.

Rules: preserve all existing functionality, scripts, Tailwind CDN and layout; use the
provided keywords naturally; invent realistic placeholders only where data is missing;
seoScore is 0-100 based on optimization completeness.
"""

SEO_ANALYSIS_SHAPE = """
Return a JSON object with:
{
  "seoScore": 0,
  "strengths": ["list of SEO strengths"],
  "weaknesses": ["list of SEO issues"],
  "recommendations": ["specific actionable recommendations"]
}
"""


@dataclass
class SEOOptions:
    """Page metadata for :meth:`SEOOptimizerAgent.process`; blanks fall back to placeholders."""
    keywords: List[str] = field(default_factory=list)
    key_phrase: str = ""
    title: str = ""
    description: str = ""
    author: str = ""
    site_name: str = ""
    image_url: str = ""
    url: str = ""
    twitter_handle: str = ""

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "SEOOptions":
        data = data or {}
        return cls(
            keywords=str_list(data.get("keywords")),
            key_phrase=str(data.get("key_phrase") or data.get("keyPhrase") or ""),
            title=str(data.get("title") or ""),
            description=str(data.get("description") or ""),
            author=str(data.get("author") or ""),
            site_name=str(data.get("site_name") or data.get("siteName") or ""),
            image_url=str(data.get("image_url") or data.get("imageUrl") or ""),
            url=str(data.get("url") or ""),
            twitter_handle=str(data.get("twitter_handle") or data.get("twitterHandle") or ""),
        )


class SEOOptimizerAgent(Agent):
    """Rewrites an HTML page with SEO metadata and reports a 0-100 score."""

    name = "SEO Agent"
    instructions = SEO_INSTRUCTIONS
    capabilities = [
        "HTML SEO optimization",
        "Meta tags generation",
        "Open Graph tags",
        "Twitter Cards",
        "Schema.org structured data",
        "Image alt tag optimization",
        "SEO scoring and analysis",
    ]

    def process(self, html: str, options: Optional[SEOOptions] = None) -> SEOResult:
        self.log("Starting SEO optimization...")
        opts = options or SEOOptions()
        keywords = ", ".join(opts.keywords) if opts.keywords else \
            "web development, modern design, user experience"
        prompt = (
            "Optimize this HTML for SEO with the following requirements:\n\n"
            f"**HTML Code:**\n```html\n{html}\n```\n\n"
            "**SEO Requirements:**\n"
            f"- Primary Key Phrase: \"{opts.key_phrase or 'website content'}\"\n"
            f"- Keywords: {keywords}\n"
            f"- Title: \"{opts.title or 'Professional Web Development Services'}\"\n"
            f"- Description: \"{opts.description or 'High-quality web development services with modern design and excellent user experience.'}\"\n"
            f"- Author: \"{opts.author or 'Web Developer'}\"\n"
            f"- Site Name: \"{opts.site_name or 'CodeVibe'}\"\n"
            f"- Featured Image: \"{opts.image_url or 'https://example.com/images/featured.jpg'}\"\n"
            f"- URL: \"{opts.url or 'https://example.com'}\"\n"
            f"- Twitter Handle: \"{opts.twitter_handle or '@webdev'}\"\n\n"
            "Apply every SEO best practice: meta tags, Open Graph, Twitter Cards, "
            "Schema.org JSON-LD, image alt text, semantic HTML and keyword placement."
        )
        payload = self.ask(prompt, "seo", "SEOAgent.process")
        result = SEOResult(
            optimized_html=payload["optimizedHtml"],
            seo_score=payload["seoScore"],
            analysis=str(payload.get("analysis") or ""),
            changes=str_list(payload.get("changes")),
            recommendations=str_list(payload.get("recommendations")),
        )
        self.log(f"SEO optimization completed. Score: {result.seo_score}/100", "success")
        self.log(f"Applied {len(result.changes)} optimizations")
        return result

    def analyze_seo(self, html: str) -> SEOAnalysisResult:
        self.log("Analyzing HTML for SEO...")
        prompt = f"Analyze this HTML for SEO and provide a score and recommendations:\n\n```html\n{html}\n```\n{SEO_ANALYSIS_SHAPE}"
        payload = self.ask(prompt, "seo_analysis", "SEOAgent.analyze_seo")
        result = SEOAnalysisResult(
            seo_score=payload["seoScore"],
            strengths=str_list(payload.get("strengths")),
            weaknesses=str_list(payload.get("weaknesses")),
            recommendations=str_list(payload.get("recommendations")),
        )
        self.log(f"SEO analysis completed. Score: {result.seo_score}/100", "success")
        return result

    def extract_keywords(self, content: str, count: int = 10) -> KeywordsResult:
        prompt = (
            f"Extract the top {count} most relevant keywords from this content:\n\n{content}\n\n"
            'Return a JSON object with:\n{"keywords": ["keyword1", "keyword2"], '
            '"keyPhrases": ["key phrase 1", "key phrase 2"]}'
        )
        payload = self.ask(prompt, "keywords", "SEOAgent.extract_keywords")
        return KeywordsResult(keywords=str_list(payload["keywords"]),
                              key_phrases=str_list(payload.get("keyPhrases")))
