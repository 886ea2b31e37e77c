"""
Cyber Trader Pro - メインアプリケーション
Flask による JSON API（期待変動幅・テクニカルシグナル・AI分析・保存済み予測）
"""
import math
import os

from flask import Flask, jsonify, request

from config import Config
from core.enrichment import enrich_result, recommend
from core.exceptions import (
    DataUnavailableError,
    InvalidInputError,
    PersistenceError,
    ProviderError,
    ProviderRateLimited,
)
from core.expected_move import ExpectedMoveCalculator
from core.prediction_store import JSONFileBackend, PredictionStore
from core.signal_engine import SignalEngine
from models.analysis import LOCAL_FALLBACK_SOURCE
from models.strategy import STRATEGY_TYPES, all_profiles, get_profile
from services.ai_analyst import AIAnalyst
from services.ai_manager import AIProviderChain
from services.market_data import MarketDataService
from services.market_scanner import MAJOR_INDEXES, MarketScanner
from services.technical_analysis import OHLCVIndicatorSource
from utils.logger import get_logger

logger = get_logger("app")

# ============================================================
# Flask アプリケーション初期化
# ============================================================
app = Flask(__name__)
app.config.from_object(Config)

# ============================================================
# サービスの初期化
# ============================================================
calculator = ExpectedMoveCalculator()
market_data = MarketDataService()
signal_engine = SignalEngine(OHLCVIndicatorSource(market_data))
market_scanner = MarketScanner(market_data, max_symbols=Config.MAX_SCAN_SYMBOLS)
ai_chain = AIProviderChain()
ai_analyst = AIAnalyst(ai_chain)
prediction_store = PredictionStore(JSONFileBackend(Config.PREDICTION_STORE_PATH))


def _json_body() -> dict:
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


def _to_float(value, name: str) -> float:
    try:
        number = float(value)
    except (TypeError, ValueError):
        raise InvalidInputError(f"{name} must be a number: {value!r}") from None
    if not math.isfinite(number):
        raise InvalidInputError(f"{name} must be finite: {value!r}")
    return number


@app.errorhandler(InvalidInputError)
def handle_invalid_input(e):
    return jsonify({"error": str(e)}), 400


# ============================================================
# ルート: 計算・分析
# ============================================================
@app.route("/api/expected-move", methods=["POST"])
def expected_move():
    """期待変動幅（1σ / 2σ レンジ）を計算する"""
    body = _json_body()
    result = calculator.compute(
        body.get("price"), body.get("volatilityPct"), body.get("days"),
    )
    return jsonify(result.to_dict())


@app.route("/api/analyze", methods=["POST"])
def analyze():
    """複数銘柄のテクニカルシグナルを生成する（銘柄ごとの失敗は結果内に記録）"""
    body = _json_body()
    tickers = body.get("tickers")
    if not tickers or not isinstance(tickers, list):
        return jsonify({"error": "Invalid tickers parameter"}), 400
    if len(tickers) > Config.MAX_TICKERS_PER_REQUEST:
        return jsonify({
            "error": f"Too many tickers (max {Config.MAX_TICKERS_PER_REQUEST})",
        }), 400
    if body.get("strategyType") not in STRATEGY_TYPES:
        return jsonify({"error": "Invalid strategyType parameter"}), 400

    profile = get_profile(body["strategyType"])
    enrich = bool(body.get("enrich", False))
    account_balance = body.get("accountBalance")
    if account_balance is not None:
        account_balance = _to_float(account_balance, "accountBalance")
    # {ticker: オプションチェーン情報}（任意、結果にそのまま添付する）
    option_data = body.get("optionData") if isinstance(body.get("optionData"), dict) else {}

    results = []
    for raw in tickers:
        ticker = str(raw or "").strip().upper()
        try:
            quote = market_data.get_quote(ticker)
            result = signal_engine.analyze(
                ticker,
                quote["price"],
                profile,
                option_data=option_data.get(ticker),
                account_balance=account_balance,
            )
            if enrich:
                result = enrich_result(result, profile, ai_analyst)
            results.append(result.to_dict())
        except (DataUnavailableError, InvalidInputError) as e:
            logger.warning("%s: 分析失敗 - %s", ticker or raw, e)
            results.append({"ticker": ticker or raw, "error": str(e)})

    logger.info("分析完了: %s %d銘柄", profile.name, len(results))
    return jsonify(results)


@app.route("/api/strategies")
def get_strategies():
    """戦略プロファイル一覧"""
    return jsonify([p.to_dict() for p in all_profiles()])


# ============================================================
# ルート: スキャナー
# ============================================================
@app.route("/api/scanner/indexes")
def scanner_indexes():
    return jsonify(list(MAJOR_INDEXES))


@app.route("/api/scanner/market")
def scan_market():
    """指数構成銘柄の騰落率スキャン"""
    index = request.args.get("index", "").strip()
    if not index:
        return jsonify({"error": "Index parameter is required"}), 400
    return jsonify(market_scanner.scan_market(index))


@app.route("/api/scanner/ema-rsi", methods=["POST"])
def scan_ema_rsi():
    """5分足 EMA65/EMA200 + RSI の平均回帰スキャン"""
    body = _json_body()
    results = market_scanner.scan_ema_rsi(
        body.get("symbols"),
        signal_type=body.get("signalType", "all"),
        min_deviation=body.get("minDeviation", 2.0),
    )
    return jsonify(results)


# ============================================================
# ルート: AI
# ============================================================
@app.route("/api/ai/sentiment")
def ai_sentiment():
    """市場センチメント分析"""
    ticker = request.args.get("ticker", "").strip()
    if not ticker:
        return jsonify({"error": "Ticker parameter is required"}), 400

    try:
        result = ai_analyst.analyze_sentiment(ticker)
    except ProviderRateLimited as e:
        logger.warning("センチメント: レート制限 (%s)", e)
        return jsonify({"error": "AI provider rate limit exceeded", "ticker": ticker}), 429
    except ProviderError as e:
        logger.error("センチメント分析エラー: %s", e)
        return jsonify({
            "error": "Failed to analyze sentiment",
            "ticker": ticker,
            "sentiment": "Neutral",
            "confidence": 0.5,
            "analysis": f"Sentiment analysis for {ticker} is temporarily unavailable.",
            "source": LOCAL_FALLBACK_SOURCE,
        }), 500
    return jsonify({"ticker": ticker, **result})


@app.route("/api/ai/technical-analysis", methods=["POST"])
def ai_technical_analysis():
    """テクニカル指標のAIレビュー（失敗時はローカル多数決）"""
    body = _json_body()
    ticker = str(body.get("ticker") or "").strip()
    indicators = body.get("indicators")
    if not ticker or body.get("currentPrice") is None or not isinstance(indicators, dict):
        return jsonify({"error": "ticker, currentPrice and indicators are required"}), 400

    current_price = _to_float(body["currentPrice"], "currentPrice")
    if current_price <= 0:
        raise InvalidInputError(f"currentPrice must be > 0: {current_price}")

    result = recommend(ai_analyst, ticker, indicators, current_price, mtfc=body.get("mtfc"))
    return jsonify({"ticker": ticker, **result})


@app.route("/api/ai/ticker-price")
def ai_ticker_price():
    """現在値"""
    ticker = request.args.get("ticker", "").strip()
    if not ticker:
        return jsonify({"error": "Ticker parameter is required"}), 400
    try:
        return jsonify(market_data.get_quote(ticker))
    except DataUnavailableError as e:
        logger.error("価格取得エラー: %s - %s", ticker, e)
        return jsonify({"error": "Failed to fetch ticker price", "success": False}), 500


@app.route("/api/ai/insights")
def ai_insights():
    """トレード洞察"""
    ticker = request.args.get("ticker", "").strip()
    if not ticker:
        return jsonify({"error": "Ticker parameter is required"}), 400
    try:
        result = ai_analyst.generate_insights(ticker)
    except ProviderError as e:
        logger.error("洞察生成エラー: %s", e)
        return jsonify({"error": "Failed to generate trading insights"}), 500
    return jsonify({"ticker": ticker, **result})


@app.route("/api/ai/pattern", methods=["POST"])
def ai_pattern():
    """チャートパターンの解説"""
    pattern = str(_json_body().get("pattern") or "").strip()
    if not pattern:
        return jsonify({"error": "Pattern parameter is required"}), 400
    try:
        return jsonify(ai_analyst.explain_pattern(pattern))
    except ProviderError as e:
        logger.warning("パターン解説: AI応答失敗 (%s)", e)
        return jsonify({
            "pattern": pattern,
            "explanation": (
                f"An AI explanation of the {pattern} pattern is unavailable right now. "
                "Confirm any pattern with volume and trend before trading it."
            ),
            "source": LOCAL_FALLBACK_SOURCE,
        })


@app.route("/api/ai/trade-assistant", methods=["POST"])
def trade_assistant():
    """トレード学習アシスタント"""
    body = _json_body()
    message = str(body.get("message") or "").strip()
    if not message:
        return jsonify({
            "error": "Message is required",
            "response": "I didn't receive your message. Please try again.",
            "provider": "Local Fallback",
            "model": "Basic Mode",
        }), 400

    history = body.get("history") if isinstance(body.get("history"), list) else []
    return jsonify(ai_analyst.chat(message, history, body.get("category")))


# ============================================================
# ルート: 保存済み予測
# ============================================================
@app.route("/api/predictions/<strategy_type>", methods=["GET"])
def list_predictions(strategy_type):
    try:
        items = prediction_store.list(strategy_type)
    except PersistenceError as e:
        logger.error("予測一覧の読み込み失敗: %s", e)
        return jsonify({"error": str(e)}), 503
    return jsonify(items)


@app.route("/api/predictions/<strategy_type>", methods=["POST"])
def save_prediction(strategy_type):
    """予測を保存する。保存失敗時も計算済みの内容はレスポンスに含める"""
    item = _json_body()
    try:
        stored = prediction_store.append(strategy_type, item)
    except PersistenceError as e:
        logger.error("予測の保存失敗: %s", e)
        return jsonify({"error": str(e), "saved": False, "prediction": item}), 503
    return jsonify({"saved": True, "prediction": stored}), 201


@app.route("/api/predictions/<strategy_type>/<prediction_id>", methods=["DELETE"])
def delete_prediction(strategy_type, prediction_id):
    try:
        deleted = prediction_store.delete(strategy_type, prediction_id)
    except PersistenceError as e:
        logger.error("予測の削除失敗: %s", e)
        return jsonify({"error": str(e)}), 503
    if not deleted:
        return jsonify({"error": "Prediction not found"}), 404
    return jsonify({"deleted": prediction_id})


@app.route("/api/status")
def get_status():
    """設定済みAIプロバイダとバージョン"""
    return jsonify({
        "version": Config.VERSION,
        "providers": ai_chain.available,
        "strategies": list(STRATEGY_TYPES),
    })


# ============================================================
# メイン実行
# ============================================================
if __name__ == "__main__":
    port = int(os.getenv("PORT", 5000))
    logger.info("""
    ======================================
      Cyber Trader Pro
      http://localhost:%d
    ======================================
    """, port)
    app.run(host="0.0.0.0", port=port, debug=Config.DEBUG)
