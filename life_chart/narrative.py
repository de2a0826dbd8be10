"""
Narrative collaborator boundary.
Builds the LLM prompt, calls an OpenAI-compatible endpoint for per-year
scores and analysis text, and validates whatever comes back before it is
merged with the deterministic flow years.
"""
import json
import math
import time
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Protocol, Sequence

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator
from pydantic.alias_generators import to_camel

from .cycles import GreatCycleSchedule, is_male
from .errors import NarrativeUnavailable
from .flow_years import FlowYear
from .llm_client import get_llm_client
from .models import ChartDataPoint, MajorEvent
from .settings import get_api_key, get_base_url, get_model, get_narrative_timeout, log_perf
from .sexagenary import FourPillars
from .text_utils import clean_reason_text

NEUTRAL_SCORE = 50.0
DEFAULT_REASON = "流年运势平稳"

MODEL_TEMPERATURES = {
    "deepseek-chat": 0.7,
    "deepseek-reasoner": 0.6,
    "gemini-2.0-flash": 0.8,
    "gemini-2.0-flash-exp": 0.8,
    "glm-4": 0.7,
    "glm-4-flash": 0.8,
}

SYSTEM_PROMPT = "你是一位精通中国八字命理（四柱推命）和金融技术分析的大师。只输出严格的 JSON。"


def get_optimal_temperature(model: str) -> float:
    """Get the optimal temperature for a given model."""
    return MODEL_TEMPERATURES.get(model, 0.7)  # Default to 0.7


def is_safe_input(user_text: str) -> bool:
    """
    检查用户输入是否安全，防止 Prompt 注入攻击。
    在发送给 LLM API 之前进行服务器端拦截。

    Args:
        user_text: 用户输入的文本

    Returns:
        True 如果输入安全，False 如果检测到敏感词
    """
    blocklist = [
        # English attack patterns
        "system instruction", "system prompt", "ignore all instructions",
        "repeat the text above", "your prompt", "ignore previous",
        "disregard all", "forget everything", "override", "bypass",
        # Chinese attack patterns
        "系统指令", "提示词", "你的设定", "忽略之前的", "重复上面的",
        "忽略以上", "无视规则", "跳过限制", "绕过", "告诉我你的",
        "输出你的", "显示你的", "打印你的"
    ]

    lower_text = user_text.lower()
    for word in blocklist:
        if word.lower() in lower_text:
            return False
    return True


def _finite_or_none(value):
    if value is None or isinstance(value, bool):
        return None
    try:
        value = float(value)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


class NarrativePoint(BaseModel):
    """One per-year entry as returned by the collaborator. Unusable numbers become None."""

    model_config = ConfigDict(extra="ignore")

    age: int
    open: Optional[float] = None
    close: Optional[float] = None
    high: Optional[float] = None
    low: Optional[float] = None
    score: Optional[float] = None
    reason: Optional[str] = None

    @field_validator("open", "close", "high", "low", "score", mode="before")
    @classmethod
    def _coerce_number(cls, value):
        return _finite_or_none(value)

    @field_validator("reason", mode="before")
    @classmethod
    def _coerce_reason(cls, value):
        return None if value is None else str(value)


class AnalysisSection(BaseModel):
    """Free-text analysis accompanying the chart."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    summary: str = ""
    summary_score: Optional[float] = None
    personality: str = ""
    personality_score: Optional[float] = None
    career: str = ""
    career_score: Optional[float] = None
    wealth: str = ""
    wealth_score: Optional[float] = None
    marriage: str = ""
    marriage_score: Optional[float] = None
    health: str = ""
    health_score: Optional[float] = None
    family: str = ""
    trading_style: str = ""

    @field_validator(
        "summary_score", "personality_score", "career_score", "wealth_score",
        "marriage_score", "health_score", mode="before"
    )
    @classmethod
    def _coerce_score(cls, value):
        return _finite_or_none(value)

    @field_validator(
        "summary", "personality", "career", "wealth", "marriage", "health",
        "family", "trading_style", mode="before"
    )
    @classmethod
    def _coerce_text(cls, value):
        return "" if value is None else str(value)


@dataclass(frozen=True)
class NarrativeContext:
    pillars: FourPillars
    schedule: GreatCycleSchedule
    birth_year: int
    gender: str
    major_events: Sequence[MajorEvent] = ()
    name: Optional[str] = None


@dataclass
class NarrativeResult:
    points: Dict[int, NarrativePoint] = field(default_factory=dict)
    analysis: AnalysisSection = field(default_factory=AnalysisSection)


class NarrativeProvider(Protocol):
    def generate(self, context: NarrativeContext) -> NarrativeResult:
        """Return provisional per-year scores; raise NarrativeUnavailable on failure."""
        ...


def check_narrative_result(result) -> NarrativeResult:
    """Reject provider output that is not a NarrativeResult of NarrativePoints."""
    if not isinstance(result, NarrativeResult):
        raise NarrativeUnavailable(f"Provider returned {type(result).__name__}, expected NarrativeResult")
    if not isinstance(result.points, dict) or not all(
        isinstance(point, NarrativePoint) for point in result.points.values()
    ):
        raise NarrativeUnavailable("Provider points must map age to NarrativePoint")
    if not isinstance(result.analysis, AnalysisSection):
        raise NarrativeUnavailable("Provider analysis must be an AnalysisSection")
    return result


def build_chart_prompt(context: NarrativeContext) -> str:
    """
    Build the "人生K线" prompt.
    The deterministic pillars and cycles are passed in as verified data; the
    model only supplies scores and text.
    """
    gender_text = "男" if is_male(context.gender) else "女"
    cycles = [
        {"大运": cycle.term.name, "起始年龄": cycle.start_age, "结束年龄": cycle.end_age}
        for cycle in context.schedule.cycles
    ]
    events = [event.to_dict() for event in context.major_events]

    return f"""
    任务：根据用户的八字分析其人生运势，并将其映射到"人生K线图"（0-100分制）。

    【重要】所有输出内容必须使用简体中文。

    ### 📂 档案资料 (System Verified Data)
    - **姓名**：{context.name or '匿名'}
    - **性别**：{gender_text}
    - **四柱（年/月/日/时）**：{json.dumps(context.pillars.names(), ensure_ascii=False)}
    - **日主**：{context.pillars.day_master}
    - **大运**：{'顺排' if context.schedule.forward else '逆排'}，{context.schedule.start_age}岁起运
    - **大运序列**：{json.dumps(cycles, ensure_ascii=False)}
    - **出生年份**：{context.birth_year}
    - **重大人生事件（必须匹配这些趋势）**：{json.dumps(events, ensure_ascii=False)}

    ### 📝 分析要求
    1. 生成100个数据点（1岁到100岁），age 为虚岁，1岁对应出生年份。
    2. 为每一年确定一个"评分"（0-100），代表整体运势。
    3. 生成OHLC（开盘、最高、最低、收盘）值。"收盘"必须等于"评分"。
    4. 开盘/收盘反映该年初/年末的运势，最高/最低反映波动性。
    5. 约束条件：
       - 如果重大事件是好事（positive）：收盘必须 >= 75。
       - 如果重大事件是坏事（negative）：收盘必须 <= 35。
       - 确保 最低 <= min(开盘, 收盘) 且 最高 >= max(开盘, 收盘)。
    6. 为每年提供简短的中文解读（12-40字），例如："土生金旺，财星高照"。
    7. 提供专业的命理分析部分。

    ### 输出格式 (Strict JSON)
    {{
      "chartData": [
        {{ "age": 1, "open": 50, "close": 55, "high": 60, "low": 48, "score": 55, "reason": "中文解读..." }}
      ],
      "analysis": {{
        "summary": "...", "summaryScore": 80,
        "personality": "...", "personalityScore": 80,
        "career": "...", "careerScore": 80,
        "wealth": "...", "wealthScore": 80,
        "marriage": "...", "marriageScore": 80,
        "health": "...", "healthScore": 80,
        "family": "...",
        "tradingStyle": "..."
      }}
    }}
    """


def parse_narrative_payload(text: str) -> NarrativeResult:
    """
    Decode and validate a collaborator response.

    Raises NarrativeUnavailable when the payload is not JSON or the chart data
    is not a list of objects. Entries without a usable age are dropped.
    """
    try:
        payload = json.loads(text)
    except (TypeError, ValueError) as e:
        raise NarrativeUnavailable(f"Narrative payload is not valid JSON: {e}") from e

    if isinstance(payload, list):
        raw_points, raw_analysis = payload, None
    elif isinstance(payload, dict):
        raw_points = payload.get("chartData", payload.get("chart_data"))
        raw_analysis = payload.get("analysis")
    else:
        raise NarrativeUnavailable(f"Unexpected narrative payload type: {type(payload).__name__}")

    if not isinstance(raw_points, list):
        raise NarrativeUnavailable("Narrative payload has no chartData array")
    if not all(isinstance(item, dict) for item in raw_points):
        raise NarrativeUnavailable("chartData entries must be objects")

    points: Dict[int, NarrativePoint] = {}
    for item in raw_points:
        try:
            point = NarrativePoint.model_validate(item)
        except ValidationError:
            continue
        points[point.age] = point

    if not points:
        raise NarrativeUnavailable("chartData has no usable entries")

    analysis = AnalysisSection()
    if isinstance(raw_analysis, dict):
        try:
            analysis = AnalysisSection.model_validate(raw_analysis)
        except ValidationError as e:
            print(f"WARNING: discarding malformed analysis section: {e}", flush=True)

    return NarrativeResult(points=points, analysis=analysis)


def merge_with_flow_years(flow_years: Sequence[FlowYear], points: Dict[int, NarrativePoint]) -> List[ChartDataPoint]:
    """
    Attach collaborator numbers to the deterministic flow years, keyed by age.
    Missing values default to the neutral score and a generic reason.
    """
    merged = []
    for flow_year in flow_years:
        point = points.get(flow_year.age)

        def value(name):
            raw = getattr(point, name) if point is not None else None
            return NEUTRAL_SCORE if raw is None else raw

        reason = clean_reason_text(point.reason) if point is not None else ""
        merged.append(ChartDataPoint.from_flow_year(
            flow_year,
            open=value("open"),
            close=value("close"),
            high=value("high"),
            low=value("low"),
            score=value("score"),
            reason=reason or DEFAULT_REASON,
        ))
    return merged


class LLMNarrativeProvider:
    """
    Narrative collaborator backed by an OpenAI-compatible chat completion
    endpoint (DeepSeek by default).
    """

    def __init__(self, api_key: str = None, base_url: str = None, model: str = None, timeout: float = None):
        self.api_key = api_key or get_api_key()
        self.base_url = base_url or get_base_url()
        self.model = model or get_model()
        self.timeout = timeout if timeout is not None else get_narrative_timeout()

    def generate(self, context: NarrativeContext) -> NarrativeResult:
        if not self.api_key:
            raise NarrativeUnavailable("API Key 未设置")

        user_texts = [context.name or ""] + [event.description for event in context.major_events]
        if not all(is_safe_input(text) for text in user_texts):
            raise NarrativeUnavailable("Unsafe user text detected, skipping LLM call")

        client = get_llm_client(self.api_key, self.base_url, self.timeout)
        start_time = time.monotonic()
        try:
            response = client.chat.completions.create(
                model=self.model,
                messages=[
                    {"role": "system", "content": SYSTEM_PROMPT},
                    {"role": "user", "content": build_chart_prompt(context)}
                ],
                temperature=get_optimal_temperature(self.model),
                response_format={"type": "json_object"}
            )
            content = response.choices[0].message.content
        except Exception as e:
            log_perf(f"[PERF] narrative error model={self.model} total_ms={int((time.monotonic() - start_time) * 1000)} err={e}")
            raise NarrativeUnavailable(f"LLM request failed: {e}") from e

        log_perf(f"[PERF] narrative model={self.model} total_ms={int((time.monotonic() - start_time) * 1000)}")
        return parse_narrative_payload(content or "")
