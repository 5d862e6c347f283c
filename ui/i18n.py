"""English and Chinese display strings."""

from typing import Dict

from models import Locale

TRANSLATIONS: Dict[Locale, Dict[str, str]] = {
    Locale.EN: {
        "title": "agy-top",
        "detecting_server": "Detecting Antigravity Language Server...",
        "server_found": "Found Language Server on port",
        "server_not_found": "Failed to detect Language Server",
        "tip_ide_running": "Make sure Antigravity IDE is running and try again.",
        "models": "Models:",
        "refreshing": "Refreshing...",
        "last": "Last:",
        "just_now": "just now",
        "seconds_ago": "s ago",
        "minutes_ago": "m ago",
        "hours_ago": "h ago",
        "credits_overview": "CREDITS OVERVIEW",
        "prompt": "Prompt:",
        "flow": "Flow:",
        "model_quotas": "MODEL QUOTAS",
        "no_model_data": "No model quota data available...",
        "model": "MODEL",
        "remaining": "REMAINING",
        "resets_in": "RESETS IN",
        "estimated_usage": "ESTIMATED TOKEN USAGE",
        "total": "Total",
        "not_authenticated": 'Not authenticated. Run "agy-top login" to submit to leaderboard.',
        "goodbye": "Goodbye!",
        "leaderboard": "agy-top Leaderboard",
        "no_entries_yet": "No entries yet. Be the first to submit!",
        "rank": "RANK",
        "user": "USER",
        "tokens": "TOKENS",
        "tier": "TIER",
        "sessions": "Sessions",
        "your_rank": "Your rank:",
        "participants": "participants",
        "period_daily": "Daily",
        "period_weekly": "Weekly",
        "period_monthly": "Monthly",
        "period_yearly": "Yearly",
        "period_all_time": "All-Time",
        "submitting": "Submitting usage data...",
        "submit_success": "Submitted! Rank:",
        "submit_flagged": "Submission flagged for review",
        "submit_failed": "Failed to submit:",
        "login_required": "Please login first: agy-top login",
        "no_usage_data": "No usage data available",
        "no_new_usage": "No new usage to submit",
        "recent_submission": "Last submission was {minutes} minutes ago. Use --force to submit anyway.",
        "input_tokens": "Input Tokens",
        "output_tokens": "Output Tokens",
        "trust_score": "Trust Score",
        "opening_browser": "Opening browser for login...",
        "browser_fallback": "If the browser doesn't open, visit:",
        "waiting_for_login": "Waiting for login...",
        "login_success": "Login Successful!",
        "login_failed": "Login Failed",
        "logged_in_as": "Logged in as",
        "not_logged_in": "Not logged in.",
        "token_invalid": "Stored token is no longer valid. Run agy-top login again.",
        "logged_out": "Logged out.",
        "language_set": "Language set to",
        "usage_history": "Your Usage",
        "period": "PERIOD",
        "not_ranked": "Not ranked yet for this period.",
    },
    Locale.ZH: {
        "title": "agy-top",
        "detecting_server": "正在检测 Antigravity 语言服务器...",
        "server_found": "发现语言服务器，端口",
        "server_not_found": "未能检测到语言服务器",
        "tip_ide_running": "请确保 Antigravity IDE 正在运行后重试。",
        "models": "模型:",
        "refreshing": "刷新中...",
        "last": "上次:",
        "just_now": "刚刚",
        "seconds_ago": "秒前",
        "minutes_ago": "分钟前",
        "hours_ago": "小时前",
        "credits_overview": "额度概览",
        "prompt": "提示:",
        "flow": "流程:",
        "model_quotas": "模型配额",
        "no_model_data": "暂无模型配额数据...",
        "model": "模型",
        "remaining": "剩余",
        "resets_in": "重置于",
        "estimated_usage": "预估 Token 用量",
        "total": "合计",
        "not_authenticated": '未登录。运行 "agy-top login" 即可提交到排行榜。',
        "goodbye": "再见!",
        "leaderboard": "agy-top 排行榜",
        "no_entries_yet": "暂无数据，快来成为第一名!",
        "rank": "排名",
        "user": "用户",
        "tokens": "TOKENS",
        "tier": "等级",
        "sessions": "会话数",
        "your_rank": "你的排名:",
        "participants": "位参与者",
        "period_daily": "今日",
        "period_weekly": "本周",
        "period_monthly": "本月",
        "period_yearly": "本年",
        "period_all_time": "全部",
        "submitting": "正在提交使用数据...",
        "submit_success": "提交成功! 排名:",
        "submit_flagged": "提交已标记待审核",
        "submit_failed": "提交失败:",
        "login_required": "请先登录: agy-top login",
        "no_usage_data": "没有可用的使用数据",
        "no_new_usage": "没有新的使用数据可提交",
        "recent_submission": "上次提交在 {minutes} 分钟前。使用 --force 强制提交。",
        "input_tokens": "输入 Tokens",
        "output_tokens": "输出 Tokens",
        "trust_score": "信任分",
        "opening_browser": "正在打开浏览器登录...",
        "browser_fallback": "如果浏览器没有打开，请访问:",
        "waiting_for_login": "等待登录...",
        "login_success": "登录成功!",
        "login_failed": "登录失败",
        "logged_in_as": "已登录:",
        "not_logged_in": "未登录。",
        "token_invalid": "已保存的令牌失效，请重新运行 agy-top login。",
        "logged_out": "已退出登录。",
        "language_set": "语言已设置为",
        "usage_history": "你的用量",
        "period": "周期",
        "not_ranked": "本周期尚未上榜。",
    },
}


class Translator:
    """Looks up display strings for one locale, falling back to English."""

    def __init__(self, locale: Locale = Locale.EN) -> None:
        self.locale = Locale(locale)

    def __call__(self, key: str, **values) -> str:
        text = TRANSLATIONS[self.locale].get(key) or TRANSLATIONS[Locale.EN].get(key, key)
        return text.format(**values) if values else text

    def period(self, period: str) -> str:
        return self(f"period_{period}")
