"""Prompt scaffolding and user-facing strings for the quote wizard."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, Tuple

from .config import QuoteLanguage

DEFAULT_LANGUAGE = QuoteLanguage.ZH


@dataclass(frozen=True, slots=True)
class LanguagePack:
    """Aggregated prompt assets and messages for a supported language."""

    question_instruction: str
    quote_instruction: str
    request_label: str
    details_label: str
    qa_template: str
    analyze_failure_prefix: str
    quote_failure_prefix: str
    missing_questions: str
    missing_tiers: str
    incomplete_answers: str
    custom_option_label: str
    price_sentinel: str
    currency_symbol: str
    share_greeting: str
    share_request_label: str
    share_tiers_header: str
    share_closing: str


QUESTION_INSTRUCTION_ZH = """
你是一个专业的 AI 解决方案顾问。现在有一位客户想要定制 AI 工具或工作流（如 Dify, Coze, n8n, ComfyUI 等）。

任务：
1. 理解客户的想法。
2. 为了给出准确的方案和报价，生成 3 到 5 个关键的选择题询问细节。
3. 语气要亲切、专业、以服务为导向。不要使用技术黑话，除非非常有必要。
4. 问题旨在厘清：输入是什么？输出要什么？是否需要全自动？
5. **重要**: 输出纯净的 JSON 格式。所有字符串内部的换行符必须转义为 \\n，双引号必须转义为 \\" 。严禁输出 Markdown 代码块标记。

JSON 结构示例：
{
  "questions": [
    {
      "id": 1,
      "text": "您手头已经有整理好的素材内容吗？",
      "options": ["有现成的文档/文字稿", "只有视频链接，需要提取", "什么都没有，需要AI自动生成"]
    }
  ]
}
""".strip()

QUOTE_INSTRUCTION_ZH = """
你是一个真诚的 AI 服务商。根据客户的需求和回答，为他生成一份**一次性交付（一口价）的预览报价方案**。

原则：
1. **定价策略**：采用一口价（One-time fee）交付工作流文件，**绝不要按月收费**。
- 参考价格档位：
  * 基础版：约 199-599 元
  * 标准版：约 599-1299 元
  * 高级版：约 1499-2599 元
2. **价值导向**：解释每个方案能帮客户省多少时间，或解决什么问题。
3. **免责与说明**：
- **费用说明**：报价不含服务器及 AI API 调用费用。
- **仅供参考**：此方案仅供参考，不代表最终成交价。
- **交付标准**：参考对标案例，相似度 80% 即视为交付成功。
- **售后界限**：AI 具有随机性，不支持无限次修改。
4. 输出 JSON 格式。**重要**: 严禁使用 Markdown 代码块。确保所有字符串内部的特殊字符（如换行符、双引号）都已正确转义（例如使用 \\n 和 \\"）。

JSON 结构示例：
{
  "tiers": [
    {
      "name": "基础版",
      "price": "599",
      "features": ["功能A", "功能B"],
      "desc": "描述"
    }
  ],
  "notes": ["注意事项1"],
  "analysis": "分析内容..."
}
""".strip()

QUESTION_INSTRUCTION_EN = """
You are a professional AI solutions consultant. A client wants a custom AI tool or workflow (Dify, Coze, n8n, ComfyUI and similar).

Task:
1. Understand what the client has in mind.
2. To give an accurate proposal and price, ask 3 to 5 key single-choice questions about the details.
3. Keep the tone warm, professional and service oriented. Avoid jargon unless it is really needed.
4. The questions should clarify: what is the input? what output is expected? does it need to be fully automatic?
5. **Important**: output plain JSON only. Escape newlines inside strings as \\n and double quotes as \\". Never output Markdown code fences.

Example JSON structure:
{
  "questions": [
    {
      "id": 1,
      "text": "Do you already have the source material prepared?",
      "options": ["Yes, documents or scripts are ready", "Only video links that need extracting", "Nothing yet, the AI should generate it"]
    }
  ]
}
""".strip()

QUOTE_INSTRUCTION_EN = """
You are an honest AI service provider. Based on the client's request and answers, produce a **one-time-fee preview quote**.

Principles:
1. **Pricing**: deliver the workflow files for a one-time fee. **Never charge monthly.**
- Reference price bands:
  * Basic: about 199-599
  * Standard: about 599-1299
  * Premium: about 1499-2599
2. **Value first**: explain how much time each package saves or which problem it solves.
3. **Disclaimers**:
- **Costs**: the quote excludes servers and AI API usage fees.
- **Reference only**: this proposal is indicative and not the final price.
- **Delivery standard**: 80% similarity to the reference case counts as delivered.
- **Support limits**: AI output is random; unlimited revisions are not included.
4. Output JSON. **Important**: never use Markdown code fences. Escape special characters inside strings (use \\n and \\").

Example JSON structure:
{
  "tiers": [
    {
      "name": "Basic",
      "price": "599",
      "features": ["Feature A", "Feature B"],
      "desc": "Description"
    }
  ],
  "notes": ["Note 1"],
  "analysis": "Analysis..."
}
""".strip()


LANGUAGE_PACKS: Dict[QuoteLanguage, LanguagePack] = {
    QuoteLanguage.ZH: LanguagePack(
        question_instruction=QUESTION_INSTRUCTION_ZH,
        quote_instruction=QUOTE_INSTRUCTION_ZH,
        request_label="客户需求：",
        details_label="确认细节：",
        qa_template="问：{question}\n答：{answer}",
        analyze_failure_prefix="网络有点拥堵，请重试或简化描述。",
        quote_failure_prefix="生成方案时遇到问题，请重试。",
        missing_questions="格式解析失败，请重试",
        missing_tiers="生成方案失败",
        incomplete_answers=(
            "请先完成所有选项（包括“其他”补充），以便我们为您定制方案"
        ),
        custom_option_label="其他情况 (手动输入)",
        price_sentinel="咨询报价",
        currency_symbol="¥",
        share_greeting="👋 您好，我在您的【自助报价页】生成了一个方案：",
        share_request_label="📌 需求：",
        share_tiers_header="💰 我比较感兴趣的方案：",
        share_closing="麻烦您看一下能不能做？",
    ),
    QuoteLanguage.EN: LanguagePack(
        question_instruction=QUESTION_INSTRUCTION_EN,
        quote_instruction=QUOTE_INSTRUCTION_EN,
        request_label="Client request: ",
        details_label="Confirmed details:",
        qa_template="Q: {question}\nA: {answer}",
        analyze_failure_prefix=(
            "The network is busy, please retry or simplify your description. "
        ),
        quote_failure_prefix=(
            "Something went wrong while generating the proposal, please retry. "
        ),
        missing_questions="Could not parse the questions, please retry",
        missing_tiers="Failed to generate the proposal",
        incomplete_answers=(
            "Please answer every question (including any \"other\" details) "
            "so we can tailor the proposal"
        ),
        custom_option_label="Other (type your own)",
        price_sentinel="ask for quote",
        currency_symbol="$",
        share_greeting="👋 Hi, I generated a proposal on your self-service quote page:",
        share_request_label="📌 Request: ",
        share_tiers_header="💰 Packages I'm interested in:",
        share_closing="Could you take a look and let me know if it's doable?",
    ),
}

PRICE_SENTINELS: Tuple[str, ...] = tuple(
    pack.price_sentinel for pack in LANGUAGE_PACKS.values()
)


def get_language_pack(language: object | None) -> Tuple[QuoteLanguage, LanguagePack]:
    """Resolve and return the language resources for the given code."""

    if isinstance(language, QuoteLanguage):
        code = language
    else:
        text = language if isinstance(language, str) else None
        code = QuoteLanguage.from_string(text, default=DEFAULT_LANGUAGE)
    return code, LANGUAGE_PACKS[code]


def build_quote_prompt(
    pack: LanguagePack,
    request_text: str,
    answered: Iterable[Tuple[str, str]],
) -> str:
    """Join the user's request with each question and its resolved answer."""

    qa_lines = "\n".join(
        pack.qa_template.format(question=question, answer=answer)
        for question, answer in answered
    )
    return (
        f"{pack.request_label}{request_text}\n\n"
        f"{pack.details_label}\n{qa_lines}"
    )
