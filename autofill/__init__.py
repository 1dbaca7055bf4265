"""
Form Autofill - fills personal-profile data into arbitrary web forms.
"""
