from typing import Dict

LABELS: Dict[str, Dict[str, str]] = {
    "ru": {
        "title": "ПРОТОКОЛ ОБСЛЕДОВАНИЯ",
        "filename_prefix": "Протокол_обследования",
        "placeholder": "Информация не предоставлена",
        "s1": "Дата встречи",
        "s2": "Повестка",
        "s3": "Участники",
        "customer_side": "Со стороны Заказчика",
        "executor_side": "Со стороны Исполнителя",
        "full_name": "ФИО",
        "position": "Должность",
        "role": "Должность/роль",
        "s4": "Термины и определения",
        "s5": "Сокращения и обозначения",
        "s6": "Содержание встречи",
        "content_intro": "В ходе встречи обсуждались следующие вопросы:",
        "tab": "Вкладка",
        "features": "Особенности",
        "s7": "Вопросы",
        "answers": "Ответы",
        "s8": "Решения",
        "responsible": "Ответственный",
        "s9": "Открытые вопросы",
        "s10": "Согласовано",
        # progress channel
        "step_analysis": "🔍 Шаг 1/2: Анализ расшифровки на противоречия и недосказанности\n",
        "step_protocol": "📝 Шаг 2/2: Формирование протокола обследования\n",
        "contradictions": "⚠️ **Обнаружены противоречия:**\n",
        "ambiguities": "🤔 **Обнаружены недосказанности:**\n",
        "missing": "❗ **Недостающая критическая информация:**\n",
        "analysis_done": "✅ Анализ завершен. Уровень уверенности: {confidence}\n\n",
        "confidence_high": "высокий",
        "confidence_medium": "средний",
        "confidence_low": "низкий",
        "analysis_skipped": "⚠️ Не удалось провести полный анализ, продолжаю генерацию протокола...\n\n",
        "protocol_ready": "✅ Протокол обследования сформирован!\n\n",
        "docx_ready": "📄 Протокол готов для скачивания в формате .docx\n",
        "docx_failed": "⚠️ Не удалось сгенерировать .docx файл\n",
        "protocol_failed": "❌ Ошибка при формировании протокола. Проверьте полноту данных в расшифровке "
                           "или сократите объём и попробуйте снова.\n",
        "chat_failed": "Произошла ошибка при ответе. Попробуйте снова.",
        "timeout": "⏱️ Превышено время ожидания. Попробуйте снова или сократите объём расшифровки.\n",
        "turn_failed": "❌ Не удалось обработать запрос. Попробуйте снова.\n",
        "reply_language": "Russian",
    },
    "en": {
        "title": "SURVEY PROTOCOL",
        "filename_prefix": "Survey_protocol",
        "placeholder": "Information not provided",
        "s1": "Meeting date",
        "s2": "Agenda",
        "s3": "Participants",
        "customer_side": "Customer side",
        "executor_side": "Executor side",
        "full_name": "Full name",
        "position": "Position",
        "role": "Position/role",
        "s4": "Terms and definitions",
        "s5": "Abbreviations",
        "s6": "Meeting content",
        "content_intro": "The following topics were discussed:",
        "tab": "Tab",
        "features": "Specifics",
        "s7": "Questions",
        "answers": "Answers",
        "s8": "Decisions",
        "responsible": "Responsible",
        "s9": "Open questions",
        "s10": "Approved",
        "step_analysis": "🔍 Step 1/2: Checking the transcript for contradictions and gaps\n",
        "step_protocol": "📝 Step 2/2: Drafting the survey protocol\n",
        "contradictions": "⚠️ **Contradictions found:**\n",
        "ambiguities": "🤔 **Ambiguities found:**\n",
        "missing": "❗ **Missing critical information:**\n",
        "analysis_done": "✅ Analysis complete. Confidence: {confidence}\n\n",
        "confidence_high": "high",
        "confidence_medium": "medium",
        "confidence_low": "low",
        "analysis_skipped": "⚠️ Full analysis was not possible, continuing with the protocol...\n\n",
        "protocol_ready": "✅ Survey protocol is ready!\n\n",
        "docx_ready": "📄 The protocol can be downloaded as .docx\n",
        "docx_failed": "⚠️ Could not generate the .docx file\n",
        "protocol_failed": "❌ Could not build the protocol. Check that the transcript is complete, "
                           "or shorten it, and try again.\n",
        "chat_failed": "Something went wrong while answering. Please try again.",
        "timeout": "⏱️ The request took too long. Try again or shorten the transcript.\n",
        "turn_failed": "❌ Could not process the request. Please try again.\n",
        "reply_language": "English",
    },
}


def labels_for(locale: str) -> Dict[str, str]:
    return LABELS.get(locale, LABELS["ru"])
