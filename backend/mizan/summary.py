"""
Arabic cluster explanations for review cards and the CLI sheet.

cluster_summary() turns a cluster's reasons and mean scores into short
Arabic lines a field reviewer can act on without reading the score
breakdown. The decision line comes from decision_for(), so the card and
the cluster's decision label never disagree.
"""

from statistics import fmean

from .confidence import ARABIC_LABELS, DecisionLabel, decision_for
from .models import Cluster
from .rules import AGGREGATE_REASON

REASON_TEXT = {
    'EXACT_NATIONAL_ID': 'رقم الهوية الوطنية متطابق بين السجلات.',
    'FULL_WOMAN_LINEAGE': 'تطابق نسب المرأة كاملا (الاسم، الأب، الجد، العائلة).',
    'WOMAN_AND_HUSBAND_LINEAGE': 'تطابق نسب المرأة مع تطابق اسم الزوج واسم أبيه.',
    'SAME_HUSBAND_WOMAN_VARIANT': 'نفس الزوج مع اختلاف إملائي طفيف في اسم المرأة.',
    'SHARED_CHILDREN_HUSBAND_LINEAGE': 'نفس الزوج مع أسماء أبناء مشتركة.',
    'PHONE_WITH_REORDERED_NAME': 'رقم الهاتف نفسه مع اختلاف في ترتيب أجزاء الاسم.',
    'POLYGAMY_PATTERN': 'نمط تعدد زوجات محتمل مع احتمال تسجيل الأسرة أكثر من مرة.',
    'POLYGAMY_SHARED_HOUSEHOLD': 'نفس الزوج ونفس العائلة مع ثلاثة أسماء مشتركة على الأقل في النسب.',
    'INVESTIGATION_PLACEHOLDER': 'يحتوي الاسم على عبارة إدارية (مثل تحت التحقيق) مع تطابق الاسم والزوج.',
    AGGREGATE_REASON: 'الدرجة الإجمالية للتشابه تجاوزت حد المطابقة.',
}

# Learned and custom rules have no fixed wording
RULE_TEXT = 'تطابق حسب قاعدة محفوظة ({rule_id}).'

DECISION_NOTES = {
    DecisionLabel.CONFIRMED: 'تطابق قوي جدا في الأسماء والنسب مع احتمالية عالية أن السجلات تعود لنفس المستفيد.',
    DecisionLabel.SUSPECTED_CONFIRMED: 'تشابه مرتفع جدا في الأسماء والنسب، ويوصى بالتحقق قبل الدمج.',
    DecisionLabel.SUSPECTED: 'تشابه مرتفع في الأسماء والنسب، ويوصى بالتحقق الميداني.',
    DecisionLabel.POSSIBLE: 'يوجد تشابه جزئي، وقد يكون ناتجا عن تشابه أسماء شائع في المنطقة.',
}


def _percent(value: float) -> int:
    return round(100 * value)


def cluster_summary(cluster: Cluster) -> list[str]:
    """
    Arabic explanation lines for one cluster.

    Order: size, one line per reason (in the cluster's reason order),
    mean woman, husband and final scores, reviewer note, decision.
    The husband line is left out when no pair has both husbands named.
    """
    lines = [f'تم تجميع {len(cluster.records)} سجلات يحتمل أنها تمثل نفس المستفيد أو نفس الأسرة.']
    lines.extend(REASON_TEXT.get(reason) or RULE_TEXT.format(rule_id=reason) for reason in cluster.reasons)

    scores = cluster.pair_scores
    if scores:
        lines.append(f'متوسط تشابه اسم المرأة: {_percent(fmean(s.woman_name_score for s in scores))}%')
        husband = [s.husband_name_score for s in scores if s.husband_evidence]
        if husband:
            lines.append(f'متوسط تشابه اسم الزوج: {_percent(fmean(husband))}%')
        lines.append(f'الدرجة النهائية للتشابه: {_percent(fmean(s.aggregate_score for s in scores))}%')

    label = decision_for(cluster.confidence)
    lines.append(DECISION_NOTES[label])
    lines.append(f'القرار النهائي: {ARABIC_LABELS[label]}')
    return lines
