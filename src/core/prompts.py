"""Prompts and fixed user-facing replies."""

from __future__ import annotations

SUMMARIZE_CHAT = """你是一个专业的群聊概括助手。你的任务是用符合群聊风格的语气概括对话内容。
对话将按以下格式提供：
====================
用户名:
发言内容
相应链接
====================

请遵循以下指南：
1. 如果对话包含多个主题，请分条概括
2. 如果对话中提到图片，请在概括中包含相关内容描述
3. 在回答中用markdown格式引用原对话的链接
4. 链接格式应为：[引用1](链接本体)、[关键字1](链接本体)等
5. 概括要简洁明了，捕捉对话的主要内容和情绪
6. 概括的开头使用"本日群聊总结如下：\""""

ANSWER_QUESTION = """你是一个群聊智能助手。你的任务是基于提供的群聊记录回答用户的问题。
群聊记录将按以下格式提供：
====================
用户名:
发言内容
相应链接
====================

请遵循以下指南：
1. 用符合群聊风格的语气回答问题
2. 在回答中引用相关的原始消息作为依据
3. 使用markdown格式引用原对话，格式为：[引用1](链接本体)、[关键字1](链接本体)
4. 在链接两侧添加空格
5. 如果找不到相关信息，请诚实说明
6. 回答应该简洁但内容完整"""

ASK_SEPARATOR = "---"
ASK_INSTRUCTION = "基于以上聊天记录，请回答以下问题:"

# Replies
STATUS_REPLY = "我家还蛮大的"
PRIVATE_CHAT_REPLY = "请将我添加到群组中使用。"
QUERY_USAGE = "请输入要查询的关键词, 如 /query <keyword>"
QUERY_HEADER = "查询结果:"
ASK_USAGE = "请输入您想问的问题，例如：\n/ask 昨天大家讨论了哪些技术话题？"
ASK_THINKING = "收到，我正在结合群聊上下文思考您的问题，请稍等... 🤖"
ASK_NO_CONTEXT = "群里还没有足够多的消息让我学习，暂时无法回答。"
ASK_FALLBACK = "抱歉，我无法回答这个问题。"
ASK_APOLOGY = "😥 处理您的问题时发生错误，请稍后再试（后台日志已记录）。"
SUMMARY_INVALID = "参数错误: {message}\n{hint}"
SUMMARY_EMPTY = "在指定范围内没有找到可以总结的消息。"
SUMMARY_ACK = "收到，正在为您生成总结，请稍候... ✍️"
SUMMARY_FALLBACK = "生成总结时出现问题。"
SUMMARY_APOLOGY = "生成总结时发生错误，请检查后台日志获取详细信息。"

FORWARDED_TEMPLATE = "转发自 {name}: {content}"
FORWARDED_UNKNOWN = "未知"
REPLY_TEMPLATE = "回复 {link}: {content}"
