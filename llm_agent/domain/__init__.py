"""领域层模型与协议。

包含：
- models: 统一的 Message / ToolCall / ChatRequest / Completion 模型。
- memory: 会话记忆 Memory 协议与文本化工具函数。
- exceptions: 业务异常类型定义。
"""
