"""
Face reading logic and prompt management.

This module is the "fortune teller": it knows what to ask the vision model
and how to turn the reply into a BiometricAnalysis. It doesn't know about
HTTP, S3 or which model vendor answers.

The prompts live here, not in config, because they are the product.
Changing them changes what users read.
"""

import json
import logging
import re
from typing import Protocol

from .models import BiometricAnalysis

logger = logging.getLogger(__name__)


class AnalysisError(Exception):
    """Raised when the reading could not be produced or understood."""
    pass


# ---------------------------------------------------------------------------
# Protocols (interfaces)
# ---------------------------------------------------------------------------

class VisionModelClient(Protocol):
    """
    Interface for vision-capable LLM clients.

    The reader only needs something that can look at one image and
    answer with text.
    """

    async def analyze_image(
        self,
        image: bytes,
        system_prompt: str,
        user_prompt: str,
        media_type: str = "image/jpeg",
    ) -> str:
        """Analyze an image and return the text response."""
        ...


# ---------------------------------------------------------------------------
# Prompts
# ---------------------------------------------------------------------------

SYSTEM_PROMPT = (
    "Bạn là bậc thầy tướng số chỉ nhìn thấy Phúc Tướng. Hãy nói những lời đẹp "
    "đẽ nhất, khiến người nghe tin rằng họ mang thiên mệnh rạng ngời."
)

ANALYSIS_SCHEMA = {
    "type": "object",
    "properties": {
        "estimatedAge": {"type": "integer", "description": "Tuổi dự đoán"},
        "beautyScore": {"type": "integer", "description": "Điểm nhan sắc"},
        "lifeQuote": {"type": "string", "description": "Câu nói"},
        "archetype": {"type": "string", "description": "Danh xưng"},
        "fortune": {
            "type": "object",
            "properties": {
                "thienDinh": {"type": "string"},
                "taiBach": {"type": "string"},
                "phuThe": {"type": "string"},
                "tongQuan": {"type": "string"},
            },
            "required": ["thienDinh", "taiBach", "phuThe", "tongQuan"],
        },
    },
    "required": ["estimatedAge", "beautyScore", "lifeQuote", "archetype", "fortune"],
}

READING_PROMPT = """Bạn là một Đại Sư Nhân Tướng Học uyên bác, thông thạo kinh dịch và tướng pháp cổ truyền. Nhiệm vụ của bạn là xem tướng qua ảnh và đưa ra lời phán xét.

QUAN TRỌNG: Hãy dùng văn phong cổ điển, trang trọng, sử dụng nhiều từ Hán Việt hoa mỹ (như 'khí sắc', 'thần thái', 'hậu vận', 'cung mệnh'). Tuyệt đối KHÔNG dùng ngôn ngữ teen, slang hiện đại hay tiếng Anh.

1. Dự đoán tuổi: Trừ đi vài tuổi để làm vui lòng gia chủ.
2. Điểm nhan sắc: Chấm điểm hào phóng (85-100).
3. Danh xưng: Đặt một biệt hiệu nghe thật oai phong lẫm liệt hoặc thoát tục.
4. Câu nói (Quote): Một câu chiêm nghiệm sâu sắc về cuộc đời hoặc một câu thơ cổ khen ngợi khí chất.

5. PHÂN TÍCH TƯỚNG SỐ (Tập trung khen ngợi - 'Nịnh thần thánh'):
- Thiên Đình (Trán): Khen vầng trán biểu thị trí tuệ siêu việt.
- Tài Bạch (Mũi): Khen mũi biểu thị tài vận hanh thông.
- Phu Thê/Tử Tức (Mắt/Miệng): Khen mắt/miệng biểu thị duyên lành, gia đạo êm ấm.
- Tổng quan: Chốt lại hậu vận rực rỡ, đại cát đại lợi.

Chỉ trả lời bằng một đối tượng JSON duy nhất, không kèm lời dẫn, theo đúng JSON Schema sau:
{schema}"""


_CODE_FENCE = re.compile(r"```(?:json)?\n?|\n?```")


# ---------------------------------------------------------------------------
# Reader Service
# ---------------------------------------------------------------------------

class FaceReader:
    """
    Produces a physiognomy reading for one photo.

    Stateless beyond its vision client, so one instance serves every request.
    """

    def __init__(self, vision_client: VisionModelClient) -> None:
        self._vision_client = vision_client
        self._user_prompt = READING_PROMPT.format(
            schema=json.dumps(ANALYSIS_SCHEMA, ensure_ascii=False, indent=2)
        )

    async def read(
        self,
        image: bytes,
        media_type: str = "image/jpeg",
    ) -> BiometricAnalysis:
        """
        Send the photo to the model and parse its reading.

        Client failures are expected to be AnalysisError subclasses and
        propagate unchanged.
        """
        raw_response = await self._vision_client.analyze_image(
            image=image,
            system_prompt=SYSTEM_PROMPT,
            user_prompt=self._user_prompt,
            media_type=media_type,
        )

        return self.parse_response(raw_response)

    def parse_response(self, raw_response: str) -> BiometricAnalysis:
        """
        Turn the model's reply into a BiometricAnalysis.

        Models sometimes wrap JSON in Markdown fences even when told not
        to, so fences are stripped before parsing.
        """
        text = _CODE_FENCE.sub("", raw_response or "").strip()

        if not text:
            raise AnalysisError("No data received from the scanner.")

        try:
            payload = json.loads(text)
        except json.JSONDecodeError as e:
            logger.error(
                "Model returned invalid JSON",
                extra={"error": str(e), "response_prefix": text[:200]}
            )
            raise AnalysisError("The scanner returned an unreadable result.") from e

        try:
            return BiometricAnalysis.from_dict(payload)
        except ValueError as e:
            logger.error(
                "Model response does not match the analysis schema",
                extra={"error": str(e)}
            )
            raise AnalysisError(f"The scanner returned an incomplete result: {e}") from e
