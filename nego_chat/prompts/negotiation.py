"""
nego_chat.prompts.negotiation
~~~~~~~~~~~~~~~~~~~~~~~~~~~~~

谈判顾问与分析类接口使用的 Prompt 模板。

模板是静态文本，调用方只负责把用户输入填进去；调整措辞时不需要改动
任何 LLM 调用代码。
"""
from __future__ import annotations

import json
from typing import Any

# ---------------------------------------------------------------------------
# 房间 AI 人设：每条消息的自动回复使用
# ---------------------------------------------------------------------------
PERSONALITY_INSTRUCTION: str = "You are a {personality}. Keep responses concise and relevant."

# ---------------------------------------------------------------------------
# 谈判顾问：@nego / @gemini 指令与 analyze_negotiation 事件使用
# ---------------------------------------------------------------------------
NEGOTIATION_PROMPT_TEMPLATE: str = """\
أنت مساعد متخصص في التفاوض على العقارات، مع خبرة 20 عامًا في السوق العقاري السعودي.

معلومات عن الموقف:
{situation}

يرجى تقديم:
1. تحليل موجز للموقف
2. استراتيجية تفاوض مناسبة
3. نقاط قوة يمكن استخدامها
4. نقاط ضعف يجب الانتباه لها
5. عبارات واقتراحات محددة يمكن استخدامها في المحادثة

قدم إجابة مختصرة ومفيدة، مع التركيز على الجوانب العملية للتفاوض واستخدم لغة سهلة الفهم.\
"""

FRAUD_REPORT_PROMPT_TEMPLATE: str = """\
أنت خبير في كشف الاحتيال العقاري. قم بتحليل العقار التالي وتقرير التحليل الآلي المرفق، ثم اكتب تقريراً مفصلاً عن المخاطر المحتملة:

معلومات العقار:
{listing}

نتائج تحليل الاحتيال الآلي:
{analysis}

في تقريرك، قم بتغطية:
1. ملخص المخاطر المحتملة
2. تحليل مفصل لكل مؤشر احتيال
3. نصائح للمشتري للتعامل مع هذه المخاطر
4. الخطوات المقترحة للتحقق من مصداقية العرض
5. نصائح للتفاوض في حالة المضي قدمًا مع العرض

اجعل التقرير مهنياً ودقيقاً وموجهاً بشكل خاص لسوق العقارات العربي.\
"""

SENTIMENT_PROMPT_TEMPLATE: str = """\
قم بتحليل المشاعر في النص التالي وصنفه إلى إيجابي، سلبي، أو محايد. أعط درجة من 1 إلى 10 لمستوى الإيجابية أو السلبية.

النص: "{text}"

الرجاء الإجابة بتنسيق JSON فقط بالشكل التالي:
{{"sentiment": "positive/negative/neutral", "score": 7, "explanation": "شرح مختصر للتصنيف"}}\
"""

MARKET_INSIGHTS_PROMPT_TEMPLATE: str = """\
بناءً على التفاصيل التالية، قدم تحليلاً للسوق العقاري وتوقعات الأسعار:

{details}

قدم المعلومات التالية:
1. تقييم السعر مقارنة بالسوق (أعلى/أقل/عادل)
2. توقعات تغير الأسعار في هذه المنطقة
3. نصائح للتفاوض بناء على ظروف السوق
4. المخاطر المحتملة لهذا النوع من العقارات

الرجاء تقديم الرد بتنسيق JSON فقط:\
"""

TACTICS_PROMPT_TEMPLATE: str = """\
صفتك خبير في تحليل المفاوضات. قم بتحليل المحادثة التالية بين بائع ومشتري عقار:

{conversation}

قم بتحديد:
1. التكتيكات التي استخدمها البائع
2. التكتيكات التي استخدمها المشتري
3. نقاط القوة والضعف لكل طرف
4. اقتراحات لتحسين موقف المشتري
5. الفرص الضائعة في المحادثة

اجعل التحليل موجزًا ومفيدًا.\
"""


def _dump(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)


def build_personality_instruction(personality: str) -> str:
    """房间 AI 的系统指令。"""
    return PERSONALITY_INSTRUCTION.format(personality=personality)


def build_negotiation_prompt(situation: str) -> str:
    """把用户描述的谈判处境包进专家模板。"""
    return NEGOTIATION_PROMPT_TEMPLATE.format(situation=situation.strip())


def build_fraud_report_prompt(listing: dict[str, Any], analysis: dict[str, Any]) -> str:
    return FRAUD_REPORT_PROMPT_TEMPLATE.format(listing=_dump(listing), analysis=_dump(analysis))


def build_sentiment_prompt(text: str) -> str:
    return SENTIMENT_PROMPT_TEMPLATE.format(text=text)


def build_market_insights_prompt(details: dict[str, Any]) -> str:
    return MARKET_INSIGHTS_PROMPT_TEMPLATE.format(details=_dump(details))


def build_tactics_prompt(conversation: str) -> str:
    return TACTICS_PROMPT_TEMPLATE.format(conversation=conversation)
