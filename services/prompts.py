"""
AIプロンプト定義
JSON で回答させるプロンプトは AIAnalyst._parse_json でパースする。
"""

SYSTEM_PROMPT = (
    "You are a trading instructor and market analyst at Cyber Trader Pro University. "
    "Answer concisely. When asked for JSON, reply with a single JSON object and nothing else. "
    "Your output is educational and is not financial advice."
)

SENTIMENT_PROMPT = """Analyze the current market sentiment for {ticker}.
Consider recent news, social media trends and market movements.

Reply in JSON:
{{
  "sentiment": "Bullish" | "Bearish" | "Neutral",
  "confidence": <number between 0 and 1>,
  "analysis": "<two or three sentences>"
}}"""

TECHNICAL_ANALYSIS_PROMPT = """Review the technical indicators for {ticker} (current price {current_price}).

Indicators (value and suggested action):
{indicators}

Multi-timeframe confluence:
{mtfc}

Reply in JSON:
{{
  "recommendation": "Buy" | "Sell" | "Hold",
  "confidence": <number between 0 and 1>,
  "entryPrice": <number>,
  "targetPrice": <number>,
  "stopLoss": <number>,
  "analysis": "<short reasoning, first line states the recommendation>"
}}"""

INSIGHTS_PROMPT = """Suggest a trading approach for {ticker}.

Reply in JSON:
{{
  "strategy": "<e.g. swing trading, trend following, mean reversion>",
  "timeframe": "<short-term | medium-term | long-term>",
  "insights": "<three or four sentences>"
}}"""

PATTERN_PROMPT = """Explain the "{pattern}" chart pattern for a trading student:
how it forms, what it usually signals, how traders confirm it and where they place stops.
Keep it under 200 words."""

ASSISTANT_PROMPT = """Category: {category}

{message}"""
