"""
Nexus - Web Tools
==================
Tools that reach external HTTP APIs through a shared ``httpx.AsyncClient``:

  • ``web_search``           — NewsAPI ``/everything``
  • ``fetch_web_content``    — any http(s) page, reduced to text
  • ``get_trending_topics``  — NewsAPI top headlines
  • ``get_weather``          — OpenWeather current weather + air quality
  • ``get_news``             — GNews headlines / search
  • ``get_current_datetime`` — local clock, optional IANA timezone
  • ``get_financial_data``   — CoinGecko (crypto) / Yahoo chart (stocks)

A missing API key is answered with a configuration message, and every
HTTP failure is folded into the returned string.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Callable
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import httpx
from pydantic import SecretStr

from nexus.config.settings import settings
from nexus.src.tools.registry import Tool, ToolParams, int_param
from nexus.src.utils.logger import get_logger
from nexus.src.utils.text_utils import html_to_text

logger = get_logger(__name__)

NEWSAPI_URL = "https://newsapi.org/v2"
GNEWS_URL = "https://gnews.io/api/v4"
OPENWEATHER_URL = "https://api.openweathermap.org/data/2.5"
COINGECKO_URL = "https://api.coingecko.com/api/v3/simple/price"
YAHOO_CHART_URL = "https://query1.finance.yahoo.com/v8/finance/chart"

AQI_LABELS = {1: "Good 🟢", 2: "Fair 🟡", 3: "Moderate 🟠", 4: "Poor 🔴", 5: "Very Poor 🟣"}
GNEWS_TOPICS = frozenset({"breaking-news", "world", "nation", "business", "technology", "entertainment", "sports", "science", "health"})
CRYPTO_IDS = {"BTC": "bitcoin", "ETH": "ethereum", "SOL": "solana", "DOGE": "dogecoin", "XRP": "ripple", "BITCOIN": "bitcoin", "ETHEREUM": "ethereum"}
COMMODITY_SYMBOLS = {"GOLD": "GC=F", "SILVER": "SI=F"}

_BROWSER_USER_AGENT = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"


def _secret(value: SecretStr | str | None) -> str | None:
    if value is None:
        return None
    raw = value.get_secret_value() if isinstance(value, SecretStr) else value
    return raw.strip() or None


class WebToolkit:
    """
    Parameters
    ----------
    http_client
        Shared async client.  Tests pass one built on ``httpx.MockTransport``.
    news_api_key, gnews_api_key, openweather_api_key
        Default to the matching ``settings`` fields.
    now_fn
        Clock used by ``get_current_datetime``.
    """

    def __init__(self, http_client: httpx.AsyncClient, news_api_key: SecretStr | str | None = None, gnews_api_key: SecretStr | str | None = None, openweather_api_key: SecretStr | str | None = None, fetch_max_chars: int | None = None, now_fn: Callable[[], datetime] | None = None) -> None:
        self._http = http_client
        self._news_key = _secret(news_api_key if news_api_key is not None else settings.NEWS_API_KEY)
        self._gnews_key = _secret(gnews_api_key if gnews_api_key is not None else settings.GNEWS_API_KEY)
        self._weather_key = _secret(openweather_api_key if openweather_api_key is not None else settings.OPENWEATHER_API_KEY)
        self._fetch_max_chars = fetch_max_chars or settings.FETCH_CONTENT_MAX_CHARS
        self._now = now_fn or (lambda: datetime.now(timezone.utc))


    async def _get_json(self, url: str, params: dict[str, Any] | None = None) -> tuple[int, Any]:
        response = await self._http.get(url, params=params)
        if response.status_code >= 400:
            return response.status_code, None
        try:
            return response.status_code, response.json()
        except ValueError:
            logger.warning("[TOOLS] Non-JSON response from %s", url)
            return response.status_code, None

    # ── Search & news ──────────────────────────────────────────────────

    async def web_search(self, params: ToolParams) -> str:
        query = str(params.get("query", "")).strip()
        limit = int_param(params, "limit", 5)
        if not self._news_key:
            return "Web search not configured. Please set NEWS_API_KEY."
        if not query:
            return "Please provide a search query."
        try:
            status, data = await self._get_json(f"{NEWSAPI_URL}/everything", {"q": query, "sortBy": "publishedAt", "language": "en", "pageSize": limit, "apiKey": self._news_key})
        except httpx.HTTPError as exc:
            return f"Error searching web: {exc}"
        if data is None:
            return f"Search failed: HTTP {status}"

        articles = data.get("articles") or []
        if not articles:
            return f'No search results found for "{query}"'
        lines = [f"- **{a.get('title')}** ({_date_only(a.get('publishedAt'))})\n  Source: {(a.get('source') or {}).get('name')}\n  {a.get('description') or ''}" for a in articles]
        return f'Found {len(articles)} relevant articles about "{query}":\n\n' + "\n\n".join(lines)


    async def get_trending_topics(self, params: ToolParams) -> str:
        limit = int_param(params, "limit", 5)
        if not self._news_key:
            return "Trending topics not available. Please set NEWS_API_KEY."
        try:
            _, data = await self._get_json(f"{NEWSAPI_URL}/top-headlines", {"country": "us", "pageSize": limit, "apiKey": self._news_key})
        except httpx.HTTPError as exc:
            return f"Error fetching trending topics: {exc}"
        if data is None:
            return "Failed to fetch trending topics"
        topics = "\n".join(f"- {a.get('title')}" for a in data.get("articles") or [])
        return f"Currently trending topics:\n\n{topics}"


    async def get_news(self, params: ToolParams) -> str:
        if not self._gnews_key:
            return "Error: GNEWS_API_KEY is missing."
        topic = str(params.get("topic") or "general")
        if topic in GNEWS_TOPICS:
            url, query = f"{GNEWS_URL}/top-headlines", {"category": topic}
        else:
            url, query = f"{GNEWS_URL}/search", {"q": topic}
        query.update({"token": self._gnews_key, "lang": "en", "max": 5})
        try:
            _, data = await self._get_json(url, query)
        except httpx.HTTPError as exc:
            return f"Error fetching news: {exc}"
        if data is None:
            return f"News not found for topic: {topic}."

        articles = data.get("articles") or []
        if not articles:
            return "No articles found."
        lines = [f"- [{(a.get('source') or {}).get('name')}] **{a.get('title')}**\n  {a.get('description') or ''}\n  Link: {a.get('url')}" for a in articles]
        return f'📰 Top headlines for "{topic}":\n\n' + "\n\n".join(lines)

    # ── Page content ───────────────────────────────────────────────────

    async def fetch_web_content(self, params: ToolParams) -> str:
        url = str(params.get("url", ""))
        if not url.startswith(("http://", "https://")):
            return "Invalid URL. Must start with http:// or https://"
        try:
            response = await self._http.get(url, headers={"User-Agent": _BROWSER_USER_AGENT}, follow_redirects=True)
        except httpx.HTTPError as exc:
            return f"Error fetching content: {exc}"
        if response.status_code >= 400:
            return f"Failed to fetch content. Status: {response.status_code}"
        content = html_to_text(response.text)[: self._fetch_max_chars]
        return f"Content from {url}:\n\n{content}"

    # ── Weather ────────────────────────────────────────────────────────

    async def get_weather(self, params: ToolParams) -> str:
        if not self._weather_key:
            return "Error: OPENWEATHER_API_KEY is missing."
        location = str(params.get("location", "")).strip()
        if not location:
            return "Please provide a location."
        try:
            _, data = await self._get_json(f"{OPENWEATHER_URL}/weather", {"q": location, "appid": self._weather_key, "units": "metric"})
            if data is None:
                return f'Weather not found for "{location}".'
            aqi_value, aqi_label = await self._air_quality(data["coord"]["lat"], data["coord"]["lon"])
            return (
                f"📍 Weather in {data['name']}, {data['sys']['country']}:\n"
                f"🌡️ Temperature: **{data['main']['temp']}°C** (Feels like: {data['main']['feels_like']}°C)\n"
                f"☁️ Condition: **{data['weather'][0]['description']}**\n"
                f"💨 Wind: **{data['wind']['speed']} m/s**\n"
                f"💧 Humidity: **{data['main']['humidity']}%**\n"
                f"🌫️ Air Quality (AQI): **{aqi_value} - {aqi_label}**"
            )
        except (httpx.HTTPError, KeyError, IndexError, TypeError) as exc:
            return f"Error fetching weather: {exc}"


    async def _air_quality(self, lat: float, lon: float) -> tuple[str, str]:
        """AQI index and label; ("N/A", "Unknown") when the lookup fails."""
        try:
            _, data = await self._get_json(f"{OPENWEATHER_URL}/air_pollution", {"lat": lat, "lon": lon, "appid": self._weather_key})
            aqi = int(data["list"][0]["main"]["aqi"])
        except (httpx.HTTPError, KeyError, IndexError, TypeError, ValueError) as exc:
            logger.warning("[TOOLS] AQI lookup failed: %s", exc)
            return "N/A", "Unknown"
        return str(aqi), AQI_LABELS.get(aqi, "Unknown")

    # ── Clock ──────────────────────────────────────────────────────────

    async def get_current_datetime(self, params: ToolParams) -> str:
        now = self._now()
        tz_name = params.get("timezone")
        if tz_name:
            try:
                local = now.astimezone(ZoneInfo(str(tz_name)))
            except (ZoneInfoNotFoundError, ValueError) as exc:
                return f"Error getting date/time: unknown timezone {exc}"
            return f"Current time in {tz_name}:\n**{local.strftime('%B %d, %Y at %I:%M:%S %p')}**"
        return f"Current date & time (UTC):\n**{now.astimezone(timezone.utc).strftime('%A, %B %d, %Y at %I:%M:%S %p')}**"

    # ── Markets ────────────────────────────────────────────────────────

    async def get_financial_data(self, params: ToolParams) -> str:
        symbol = str(params.get("symbol", "")).strip()
        kind = params.get("type")
        if not symbol:
            return "Please provide a symbol."
        try:
            if kind == "crypto":
                return await self._crypto_price(symbol)
            if kind == "stock":
                return await self._stock_price(symbol)
        except (httpx.HTTPError, KeyError, TypeError, ZeroDivisionError) as exc:
            return f"Error fetching financial data: {exc}"
        return "Invalid type. Use 'crypto' or 'stock'."


    async def _crypto_price(self, symbol: str) -> str:
        coin_id = CRYPTO_IDS.get(symbol.upper(), symbol.lower())
        _, data = await self._get_json(COINGECKO_URL, {"ids": coin_id, "vs_currencies": "usd,inr", "include_24hr_change": "true"})
        if data is None:
            return f"Failed to fetch crypto data for {symbol}"
        if coin_id not in data:
            return f"Crypto symbol \"{symbol}\" not found (try full name like 'bitcoin')."
        quote = data[coin_id]
        change = quote.get("usd_24h_change")
        change_str = f"{change:.2f}" if isinstance(change, (int, float)) else "N/A"
        return f"💰 **{symbol.upper()} Price:**\n${quote['usd']} USD ({change_str}% 24h)"


    async def _stock_price(self, symbol: str) -> str:
        query_symbol = COMMODITY_SYMBOLS.get(symbol.upper(), symbol.upper())
        _, data = await self._get_json(f"{YAHOO_CHART_URL}/{query_symbol}", {"interval": "1d", "range": "1d"})
        if data is None:
            return f"Failed to fetch stock data for {symbol}"
        results = (data.get("chart") or {}).get("result") or []
        if not results or not results[0].get("meta"):
            return f'Stock symbol "{symbol}" not found.'
        meta = results[0]["meta"]
        price, prev_close = meta["regularMarketPrice"], meta["chartPreviousClose"]
        change = (price - prev_close) / prev_close * 100
        sign = "+" if change > 0 else ""
        return f"📈 **{query_symbol} Price:**\n{price} {meta.get('currency', '')} ({sign}{change:.2f}%)"


    def tools(self) -> list[Tool]:
        return [
            Tool("web_search", "Search the internet for current information or news. Returns top results with titles and descriptions.", self.web_search, {"query": "string", "limit": "integer (default 5)"}),
            Tool("fetch_web_content", "Fetch and extract the text content of a specific URL.", self.fetch_web_content, {"url": "string"}),
            Tool("get_trending_topics", "Get current trending topics and popular news.", self.get_trending_topics, {"limit": "integer (default 5)"}),
            Tool("get_weather", "Get current weather and Air Quality Index (AQI) for a city.", self.get_weather, {"location": "string"}),
            Tool("get_news", "Get latest news headlines for a topic (e.g. 'technology', 'sports') or a keyword.", self.get_news, {"topic": "string"}),
            Tool("get_current_datetime", "Get the current date and time, optionally in an IANA timezone.", self.get_current_datetime, {"timezone": "string (optional, e.g. Asia/Kolkata)"}),
            Tool("get_financial_data", "Get real-time prices for cryptocurrencies (BTC, ETH) or stocks/commodities (AAPL, GOLD).", self.get_financial_data, {"symbol": "string", "type": "crypto | stock"}),
        ]


def _date_only(iso: str | None) -> str:
    if not iso:
        return "unknown date"
    try:
        return datetime.fromisoformat(iso.replace("Z", "+00:00")).date().isoformat()
    except ValueError:
        return iso
