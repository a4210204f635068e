import re
from typing import Tuple

from markupsafe import escape

PLACEHOLDER_PATTERN = re.compile(r'\{\{\s*([A-Za-z0-9_]+)\s*\}\}')
TAG_PATTERN = re.compile(r'^[A-Za-z0-9_]+$')


class DocumentService:
    """Document templates with {{tag}} placeholders"""

    @staticmethod
    def validate_field_tags(field_tags) -> Tuple[bool, str]:
        if not isinstance(field_tags, list) or not field_tags:
            return False, "At least one field tag is required"

        seen = set()
        for item in field_tags:
            if not isinstance(item, dict):
                return False, "Each field tag must be an object with tag and label"
            tag = str(item.get('tag') or '').strip()
            label = str(item.get('label') or '').strip()
            if not tag or not label:
                return False, "Each field tag must have both tag and label"
            if not TAG_PATTERN.match(tag):
                return False, f"Invalid tag '{tag}': use letters, digits and underscores only"
            if tag in seen:
                return False, f"Duplicate field tag: {tag}"
            seen.add(tag)
        return True, ""

    @staticmethod
    def clean_field_tags(field_tags) -> list:
        return [
            {'tag': str(item['tag']).strip(), 'label': str(item['label']).strip()}
            for item in field_tags
        ]

    @staticmethod
    def employee_values(user, profile, company) -> dict:
        """Built-in tag values taken from an employee record"""
        values = {
            'full_name': user.full_name,
            'email': user.email,
            'company_name': company.name if company else '',
        }
        if profile:
            values.update({
                'employee_code': profile.employee_code,
                'department': profile.department,
                'designation': profile.designation,
                'joining_date': profile.joining_date.isoformat() if profile.joining_date else '',
                'salary': f"{profile.salary:.2f}" if profile.salary is not None else '',
            })
        return values

    @staticmethod
    def render(content: str, field_tags: list, field_values: dict, defaults: dict = None) -> str:
        """
        Replace each {{tag}} with its value.

        Lookup order: field_values, then defaults, then the tag's label in
        square brackets. Substituted text is HTML-escaped; placeholders for
        unknown tags are left untouched.
        """
        labels = {item['tag']: item['label'] for item in field_tags or []}
        field_values = field_values or {}
        defaults = defaults or {}

        def substitute(match):
            tag = match.group(1)
            value = field_values.get(tag)
            if value is None or (isinstance(value, str) and not value.strip()):
                value = defaults.get(tag)
            if value is None or value == '':
                if tag in labels:
                    return f"[{escape(labels[tag])}]"
                return match.group(0)
            return str(escape(value))

        return PLACEHOLDER_PATTERN.sub(substitute, content or '')
