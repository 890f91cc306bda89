# chat/library.py
"""Course and universal-law content, generated in informational mode."""

from dataclasses import asdict, dataclass
from typing import Dict, List, Optional

from .llm import generate_response


@dataclass(frozen=True)
class Course:
    id: str
    title: str
    description: str
    icon: str
    prompt_context: str

    def to_dict(self) -> dict:
        data = asdict(self)
        data.pop("prompt_context")
        return data


COURSES: List[Course] = [
    Course(
        id="relations",
        title="İlişkilerde Ustalık",
        description="İnsan tasarımlarını tanıyarak çatışmasız, uyumlu ve derin bağlar kurma sanatı.",
        icon="users",
        prompt_context=(
            'Bana Deneysel Tasarım Öğretisi kapsamında "İlişkilerde Ustalık" kursunu anlat. '
            "Bu kursun amacı nedir? Katılımcıya ne kazandırır? İletişim dilleri ve arketipler "
            "konusuna kısaca değinerek özetle."
        ),
    ),
    Course(
        id="success",
        title="Başarı ve Hedef",
        description="Potansiyelinizi gerçekleştirmek ve maddesel dünyada sonuç almak için gerekli stratejiler.",
        icon="target",
        prompt_context=(
            'DTÖ perspektifiyle "Başarı" kursunu detaylandır. Başarı yasaları nelerdir? '
            "Başarısızlık korkusu, atalet ve hedef belirleme konularında bu öğreti ne söyler?"
        ),
    ),
    Course(
        id="avoidance",
        title="Sakınma ve Korunma",
        description="Gereksiz enerji kayıplarından, yanlış kişilerden ve negatif döngülerden korunma yöntemleri.",
        icon="shield",
        prompt_context=(
            "DTÖ'de \"Sakınma Sanatı\" veya \"Korunma\" nedir? İnsan negatif olaylardan, yanlış "
            "kişilerden veya kendi tasarımına uymayan durumlardan nasıl sakınır? Bu eğitimin "
            "temel felsefesini açıkla."
        ),
    ),
]

LAWS: List[str] = [
    "Etki-Tepki Yasası",
    "Dengelenme Yasası",
    "Hakediş Yasası",
    "Benzerlik Yasası",
    "Zıtlıklar Yasası",
    "Değişim Yasası",
]

LAW_PROMPT = (
    'Deneysel Tasarım Öğretisi bağlamında "{law}" nedir? Bu yasa hayatımızı nasıl etkiler? '
    "İnsan ilişkilerinde ve başarıda nasıl çalışır? Somut bir örnek ver."
)

_COURSES_BY_ID: Dict[str, Course] = {c.id: c for c in COURSES}


def get_course(course_id: str) -> Optional[Course]:
    return _COURSES_BY_ID.get(course_id)


def course_content(course: Course, *, api_key_override: Optional[str] = None) -> str:
    return generate_response(course.prompt_context, informational=True, api_key_override=api_key_override)


def explain_law(law: str, *, api_key_override: Optional[str] = None) -> str:
    return generate_response(LAW_PROMPT.format(law=law), informational=True, api_key_override=api_key_override)
