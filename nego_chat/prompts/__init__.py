"""提示词模板。"""
