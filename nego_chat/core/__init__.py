"""核心配置：设置、日志、异常、限流。"""
