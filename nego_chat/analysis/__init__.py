"""房产文本分析、反欺诈与市场数据。"""
