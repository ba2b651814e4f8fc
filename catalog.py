"""
Static content of the Republic of Bean refugee-education negotiation:
the seven policy categories, the synthetic agent roster and the
reflection questions asked after the group vote.
"""
from __future__ import annotations
from typing import List, Optional, Sequence, Tuple

from models import Agent, PolicyCategory, PolicyOption, ReflectionQuestion


def _category(category_id: int, name: str, options: Sequence[Tuple[str, str, str, str]]) -> PolicyCategory:
    # Option n always costs n units.
    if len(options) != 3:
        raise ValueError(f"Category {name!r} must have exactly three options")
    return PolicyCategory(
        id=category_id,
        name=name,
        options=tuple(
            PolicyOption(
                id=idx, title=title, description=desc,
                advantages=adv, disadvantages=dis, cost=idx,
            )
            for idx, (title, desc, adv, dis) in enumerate(options, start=1)
        ),
    )


POLICY_CATALOG: Tuple[PolicyCategory, ...] = (
    _category(1, "Access to Education", [
        ("Limited Access",
         "Limit access to education for refugees, allowing only a small percentage to enroll in mainstream schools.",
         "Prioritizing resources on citizens potentially eases the pressure on educational infrastructure.",
         "Excludes a significant portion of refugee children from accessing quality education, hindering their future prospects."),
        ("Separate Schools",
         "Establish separate schools or learning centers specifically for refugee education, ensuring access to education.",
         "Provides dedicated education for refugees, considering their unique needs and challenges.",
         "This may foster segregation and limit interaction and integration opportunities between refugees and citizens."),
        ("Equal Access",
         "Provide equal access to education for all, and integrate refugee students into mainstream schools.",
         "Promotes integration, cultural exchange, and social cohesion among refugees and citizens.",
         "Requires additional resources, teacher training, and support systems to accommodate diverse student populations."),
    ]),
    _category(2, "Language Instruction", [
        ("Teanish Only",
         "Maintain the current policy of teaching only Teanish in schools, excluding other languages, including those spoken by refugees.",
         "Preserves linguistic unity and simplifies administrative processes.",
         "Hinders effective communication and integration of refugee students, potentially leading to educational disparities."),
        ("Basic Teanish Courses",
         "Provide primary Teanish language courses to refugees, enabling them to access essential services.",
         "Offers a minimum level of language proficiency for basic communication needs.",
         "Limits educational opportunities and restricts academic progress due to inadequate language skills."),
        ("Bilingual Education",
         "Implement comprehensive bilingual education programs, offering education in both Teanish and the mother tongue of refugees.",
         "Facilitates better communication, inclusivity, integration, and preservation of cultural identities.",
         "Requires additional resources and potentially challenges curriculum implementation due to diverse language demands."),
    ]),
    _category(3, "Teacher Training", [
        ("Minimal Training",
         "Provide minimal or no specific training for teachers regarding refugee education.",
         "Requires fewer resources and minimal changes to existing teacher training programs.",
         "Limits teachers' ability to effectively address the unique needs and challenges of refugee students."),
        ("Basic Training",
         "Offer basic training sessions for teachers to familiarize them with the challenges and needs of refugee students.",
         "Provides teachers with a foundational understanding of refugee education and some strategies to support students.",
         "May not fully equip teachers to address complex challenges or provide comprehensive support for refugee students."),
        ("Comprehensive Training",
         "Implement comprehensive and ongoing training programs for teachers, equipping them with the necessary skills to effectively support and educate refugee students.",
         "Enhances teachers' capacity to address the diverse needs of refugee students and promote their educational success.",
         "Requires substantial investment in training programs and ongoing professional development for teachers."),
    ]),
    _category(4, "Curriculum Adaptation", [
        ("No Adaptation",
         "Maintain the existing national curriculum without modifications.",
         "Maintains continuity and preserves the integrity of the existing curriculum.",
         "Neglects the inclusion of refugee experiences, histories, and cultural diversity, potentially hindering cultural understanding and integration."),
        ("Supplementary Materials",
         "Introduce supplementary materials and resources that acknowledge the experiences and contributions of refugees while still following the mainstream curriculum.",
         "Provides some recognition of refugee experiences within the existing curriculum, fostering empathy and awareness among students.",
         "May not fully address the specific educational and cultural needs of refugee students or provide comprehensive representation."),
        ("Inclusive Curriculum",
         "Adapt the national curriculum to include diverse perspectives, histories, and cultural elements relevant to both citizens and refugees.",
         "Promotes cultural exchange, mutual understanding, and respect among students from diverse backgrounds.",
         "Requires substantial curriculum redesign and ongoing updates to incorporate diverse perspectives, potentially posing logistical challenges and resistance to change."),
    ]),
    _category(5, "Psychosocial Support", [
        ("Minimal Support",
         "Provide limited or no specific psychosocial support for refugee students.",
         "Reduces immediate financial and resource burdens associated with providing dedicated psychosocial support.",
         "Negatively impacts the mental health and well-being of refugee students, potentially hindering their educational success."),
        ("Basic Support",
         "Establish basic support services such as counseling and peer support programs to address the psychosocial needs of refugee students.",
         "Provides some level of support and assistance to address the unique psychosocial challenges faced by refugee students.",
         "May require additional resources and trained personnel to effectively implement and maintain support services."),
        ("Comprehensive Support",
         "Develop comprehensive and specialized psychosocial support programs, offering tailored assistance to refugee students and their families.",
         "Prioritizes the mental health and well-being of refugee students, facilitating their successful integration and academic progress.",
         "Requires significant investment in resources, trained professionals, and ongoing support services to ensure their effectiveness and sustainability."),
    ]),
    _category(6, "Financial Support", [
        ("Minimal Funding",
         "Allocate minimal funds to support refugee education.",
         "Minimizes the financial burden on the government and taxpayers.",
         "Limits the quality and accessibility of educational resources and support for refugee students."),
        ("Moderate Funding",
         "Increase financial support for refugee education, although the funding may still be insufficient to meet all the needs and challenges.",
         "Provides additional resources and support to enhance the educational opportunities and outcomes for refugee students.",
         "May not fully address the financial needs and complexities associated with providing a comprehensive education for refugees."),
        ("Significant Funding",
         "Allocate significant financial resources to ensure adequate funding for refugee education, allowing for comprehensive support and inclusion.",
         "Enables the provision of high-quality education, resources, and support services for refugee students, maximizing their potential for success.",
         "Requires a substantial financial commitment and potentially reallocating resources from other areas of the budget."),
    ]),
    _category(7, "Certification/Accreditation", [
        ("Local Recognition Only",
         "Only recognize and accredit the educational qualifications and experiences obtained within the Republic of Bean, disregarding previous education obtained in the migrants' countries of origin.",
         "Simplifies the accreditation process and ensures alignment with national standards, promoting consistency in educational qualifications.",
         "Disregards the educational background and qualifications obtained by migrants, potentially overlooking valuable skills and knowledge, hindering their integration and employment opportunities."),
        ("Universal Standards",
         "Establish a comprehensive evaluation and recognition process for the certification and accreditation of previous educational experiences obtained by migrants. Use universal standards for certification and accreditation.",
         "Recognizes and values the educational achievements and qualifications obtained by migrants, enhancing their opportunities for further education and employment.",
         "Requires additional resources, expertise, and time to evaluate and assess the diverse educational backgrounds of migrants, potentially leading to delays in accessing education or employment."),
        ("Tailored Recognition",
         "Develop tailored programs and initiatives that combine recognition of previous education with additional training or assessments to ensure alignment with national standards and requirements.",
         "Provides a pathway for migrants to have their previous education recognized while addressing any gaps or discrepancies through additional training or assessments.",
         "Requires additional resources and coordination to design and implement tailored programs, potentially leading to logistical challenges and variations in educational outcomes."),
    ]),
)


def find_category(category_id: int, categories: Sequence[PolicyCategory] = POLICY_CATALOG) -> Optional[PolicyCategory]:
    for cat in categories:
        if cat.id == category_id:
            return cat
    return None


# ---------- Agents ----------
def default_agents() -> List[Agent]:
    """Fresh roster with empty selectors; callers own the returned objects."""
    return [
        Agent(
            id=1, name="Dr. Sarah Chen", age=52,
            occupation="Professor of Education Policy",
            education="Ph.D. in Education Policy",
            socioeconomic_status="Upper-middle class",
            political_stance="Progressive",
            bio="An advocate for inclusive educational policies with extensive research in refugee education programs.",
            is_ally=True,
        ),
        Agent(
            id=2, name="Thomas Reynolds", age=59,
            occupation="Business Leader",
            education="MBA from Harvard Business School",
            socioeconomic_status="Upper class",
            political_stance="Conservative",
            bio="A fiscal conservative who believes in responsible spending and traditional education approaches.",
            is_ally=False,
        ),
        Agent(
            id=3, name="Maria González", age=45,
            occupation="Community Organizer",
            education="Master's in Social Work",
            socioeconomic_status="Middle class",
            political_stance="Socialist",
            bio="A passionate advocate for social justice who believes in equal opportunities for all children.",
            is_ally=True,
        ),
        Agent(
            id=4, name="James Whitfield", age=48,
            occupation="School District Administrator",
            education="Master's in Public Administration",
            socioeconomic_status="Middle class",
            political_stance="Moderate",
            bio="A pragmatic administrator who looks for policies that can actually be delivered with the staff and budget at hand.",
            is_ally=False,
        ),
    ]


# ---------- Reflection ----------
REFLECTION_QUESTIONS: Tuple[ReflectionQuestion, ...] = (
    ReflectionQuestion("emotions", "What emotions came up for you during the decision-making process: discomfort, frustration, detachment, guilt? What do those feelings reveal about your position in relation to refugee education?"),
    ReflectionQuestion("familiar", "Did anything about your role in the game feel familiar, either from your personal or professional life? If so, how?"),
    ReflectionQuestion("assumptions", "What assumptions about refugees, policy, or education were challenged or reinforced during the game?"),
    ReflectionQuestion("dynamics", "How did the group dynamics impact your ability to advocate for certain policies? Were there moments when you chose silence or compromise? Why?"),
    ReflectionQuestion("understanding", "Has your understanding of refugee education shifted from seeing it as a service 'for them' to a system embedded in broader struggles over power, identity, and justice? If so, how?"),
    ReflectionQuestion("interests", "Whose interests did your decisions ultimately serve: refugees, citizens, or the state? Why?"),
    ReflectionQuestion("power", "What power did you assume you had as a policymaker, and who did you imagine was absent or voiceless in that process?"),
    ReflectionQuestion("compromises", "What compromises did you make for the sake of consensus, and who or what got erased in the process?"),
    ReflectionQuestion("structure", "How did the structure of the game (budget, options, scenario) shape or limit your imagination of justice?"),
    ReflectionQuestion("transformation", "If refugee education wasn't about inclusion into existing systems but about transforming those systems, what would that look like, and did your decisions move toward or away from that?"),
)


def find_question(question_id: str) -> Optional[ReflectionQuestion]:
    for q in REFLECTION_QUESTIONS:
        if q.id == question_id:
            return q
    return None
