# hubrecords/security/input_validator.py

import re
import html
import bleach

# Input validation and sanitization for user-supplied text (XSS-safe storage)


class InputValidator:
    def __init__(self):
        # Stored text is plain: no markup survives sanitization
        self.allowed_html_tags = []
        self.allowed_html_attributes = {}

        self.patterns = {
            'email': re.compile(r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'),
            # bleach keeps the body of a stripped <script>, so drop the whole block first
            'script_block': re.compile(r'<script[^>]*>.*?</script>', re.IGNORECASE | re.DOTALL),
        }

    def sanitize_string(self, input_str, max_length=255):
        """Return ``input_str`` as plain text with all markup removed.

        Raises ValueError for non-strings and for input longer than
        ``max_length``; text is never shortened.
        """
        if not isinstance(input_str, str):
            raise ValueError("Input must be a string")
        if max_length is not None and len(input_str) > max_length:
            raise ValueError(f"is too long (max {max_length} characters)")

        sanitized = self.patterns['script_block'].sub('', input_str)
        sanitized = bleach.clean(sanitized, tags=self.allowed_html_tags,
                                 attributes=self.allowed_html_attributes, strip=True)
        # bleach escapes entities; keep the stored value as plain text
        return html.unescape(sanitized).strip()

    def normalize_email(self, email):
        if not isinstance(email, str):
            return ''
        return email.strip().lower()

    def validate_email(self, email):
        return isinstance(email, str) and bool(self.patterns['email'].match(email))
