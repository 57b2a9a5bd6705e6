"""Portal languages and the few strings the assistant itself has to localize."""

from enum import Enum
from typing import Dict, Union


class Language(str, Enum):
    ENGLISH = "en"
    HINDI = "hi"
    BENGALI = "bn"
    TELUGU = "te"
    MARATHI = "mr"
    TAMIL = "ta"
    GUJARATI = "gu"
    URDU = "ur"
    KANNADA = "kn"
    ODIA = "or"
    MALAYALAM = "ml"
    PUNJABI = "pa"
    ASSAMESE = "as"
    MAITHILI = "mai"
    SANTALI = "sat"
    KASHMIRI = "ks"
    NEPALI = "ne"
    SINDHI = "sd"
    KONKANI = "kok"
    DOGRI = "doi"
    MANIPURI = "mni"
    BODO = "brx"
    BHOJPURI = "bho"
    MARWARI = "mwr"
    CHHATTISGARHI = "hne"
    HARYANVI = "bgc"


LANGUAGE_LABELS: Dict[Language, str] = {
    Language.ENGLISH: "English",
    Language.HINDI: "हिन्दी (Hindi)",
    Language.BENGALI: "বাংলা (Bengali)",
    Language.TELUGU: "తెలుగు (Telugu)",
    Language.MARATHI: "मराठी (Marathi)",
    Language.TAMIL: "தமிழ் (Tamil)",
    Language.GUJARATI: "ગુજરાતી (Gujarati)",
    Language.URDU: "اردو (Urdu)",
    Language.KANNADA: "ಕನ್ನಡ (Kannada)",
    Language.ODIA: "ଓଡ଼ିଆ (Odia)",
    Language.MALAYALAM: "മലയാളം (Malayalam)",
    Language.PUNJABI: "ਪੰਜਾਬੀ (Punjabi)",
    Language.ASSAMESE: "অসমীয়া (Assamese)",
    Language.MAITHILI: "मैथिली (Maithili)",
    Language.SANTALI: "Santali",
    Language.KASHMIRI: "कॉशुर (Kashmiri)",
    Language.NEPALI: "नेपाली (Nepali)",
    Language.SINDHI: "سنڌي (Sindhi)",
    Language.KONKANI: "कोंकणी (Konkani)",
    Language.DOGRI: "डोगरी (Dogri)",
    Language.MANIPURI: "ꯃꯩꯇꯩꯂꯣꯟ (Manipuri)",
    Language.BODO: "बड़ो (Bodo)",
    Language.BHOJPURI: "भोजपुरी (Bhojpuri)",
    Language.MARWARI: "मारवाड़ी (Marwari)",
    Language.CHHATTISGARHI: "छत्तीसगढ़ी (Chhattisgarhi)",
    Language.HARYANVI: "हरियाणवी (Haryanvi)",
}


# Apologies shown as an assistant bubble when a request fails.
APOLOGY_MESSAGES: Dict[Language, str] = {
    Language.ENGLISH: "Sorry, I could not process your request right now. Please try again.",
    Language.HINDI: "क्षमा करें, अभी आपके अनुरोध को संसाधित नहीं किया जा सका। कृपया पुनः प्रयास करें।",
    Language.BENGALI: "দুঃখিত, এই মুহূর্তে আপনার অনুরোধটি প্রক্রিয়া করা যায়নি। অনুগ্রহ করে আবার চেষ্টা করুন।",
    Language.TELUGU: "క్షమించండి, ప్రస్తుతం మీ అభ్యర్థనను ప్రాసెస్ చేయలేకపోయాను. దయచేసి మళ్ళీ ప్రయత్నించండి.",
    Language.MARATHI: "क्षमस्व, सध्या आपली विनंती पूर्ण करता आली नाही. कृपया पुन्हा प्रयत्न करा.",
    Language.TAMIL: "மன்னிக்கவும், உங்கள் கோரிக்கையை இப்போது செயல்படுத்த முடியவில்லை. மீண்டும் முயற்சிக்கவும்.",
    Language.GUJARATI: "માફ કરશો, અત્યારે તમારી વિનંતી પર પ્રક્રિયા થઈ શકી નથી. કૃપા કરીને ફરી પ્રયાસ કરો.",
    Language.URDU: "معذرت، اس وقت آپ کی درخواست پر کارروائی نہیں ہو سکی۔ براہ کرم دوبارہ کوشش کریں۔",
    Language.KANNADA: "ಕ್ಷಮಿಸಿ, ಈಗ ನಿಮ್ಮ ವಿನಂತಿಯನ್ನು ಪ್ರಕ್ರಿಯೆಗೊಳಿಸಲು ಸಾಧ್ಯವಾಗಲಿಲ್ಲ. ದಯವಿಟ್ಟು ಮತ್ತೆ ಪ್ರಯತ್ನಿಸಿ.",
    Language.ODIA: "କ୍ଷମା କରନ୍ତୁ, ବର୍ତ୍ତମାନ ଆପଣଙ୍କ ଅନୁରୋଧ ପ୍ରକ୍ରିୟାକରଣ କରାଯାଇପାରିଲା ନାହିଁ। ଦୟାକରି ପୁଣି ଚେଷ୍ଟା କରନ୍ତୁ।",
    Language.MALAYALAM: "ക്ഷമിക്കണം, ഇപ്പോൾ നിങ്ങളുടെ അഭ്യർത്ഥന പ്രോസസ്സ് ചെയ്യാൻ കഴിഞ്ഞില്ല. ദയവായി വീണ്ടും ശ്രമിക്കുക.",
    Language.PUNJABI: "ਮਾਫ਼ ਕਰਨਾ, ਇਸ ਵੇਲੇ ਤੁਹਾਡੀ ਬੇਨਤੀ 'ਤੇ ਕਾਰਵਾਈ ਨਹੀਂ ਹੋ ਸਕੀ। ਕਿਰਪਾ ਕਰਕੇ ਦੁਬਾਰਾ ਕੋਸ਼ਿਸ਼ ਕਰੋ।",
    Language.ASSAMESE: "দুঃখিত, এই মুহূৰ্তত আপোনাৰ অনুৰোধ প্ৰক্ৰিয়া কৰিব পৰা নগ'ল। অনুগ্ৰহ কৰি পুনৰ চেষ্টা কৰক।",
    Language.MAITHILI: "क्षमा करू, एखन अहाँक अनुरोध पूरा नहि भ' सकल। कृपया फेर सँ प्रयास करू।",
    Language.SANTALI: "ᱤᱠᱟᱹ ᱠᱟᱹᱧ ᱢᱮ, ᱱᱤᱛᱚᱜ ᱟᱢᱟᱜ ᱱᱮᱦᱚᱨ ᱵᱟᱝ ᱯᱩᱨᱟᱹᱣ ᱫᱟᱲᱮᱭᱟᱜ ᱠᱟᱱᱟ᱾ ᱫᱚᱭᱟᱠᱟᱛᱮ ᱫᱩᱦᱲᱟᱹ ᱪᱮᱥᱴᱟᱭ ᱢᱮ᱾",
    Language.KASHMIRI: "معاف کٔرِو، وۄنی ہیٚکہٕ نہٕ تُہٕنٛز درخواست پوٗرٕ کٔرِتھ۔ مہربانی کٔرِتھ کٔرِو بیٚیہِ کوشش۔",
    Language.NEPALI: "माफ गर्नुहोस्, अहिले तपाईंको अनुरोध प्रशोधन गर्न सकिएन। कृपया फेरि प्रयास गर्नुहोस्।",
    Language.SINDHI: "معاف ڪجو، هن وقت توهان جي درخواست تي عمل نه ٿي سگهيو. مهرباني ڪري ٻيهر ڪوشش ڪريو.",
    Language.KONKANI: "माफ करात, आतां तुमची विनंती पुराय करूंक जालें ना. उपकार करून परत यत्न करात.",
    Language.DOGRI: "माफ करो, इस बेल्लै तुंदी अर्जी पूरी नेईं होई सकी। किरपा करियै फ्ही कोशश करो।",
    Language.MANIPURI: "ꯊꯧꯖꯥꯜ ꯍꯥꯏꯖꯔꯤ, ꯍꯧꯖꯤꯛ ꯅꯍꯥꯛꯀꯤ ꯍꯥꯏꯖꯕ ꯑꯗꯨ ꯄꯥꯡꯊꯣꯛꯄ ꯉꯝꯗꯦ꯫ ꯑꯃꯨꯛ ꯍꯟꯅ ꯍꯣꯠꯅꯕꯤꯌꯨ꯫",
    Language.BODO: "निमाहा हो, दा नोंथांनि बिनतिखौ मावनो हाया। अननानै फिन नाजा।",
    Language.BHOJPURI: "माफ करीं, अबहीं राउर अनुरोध पूरा ना हो पावल। किरपा करके फेर से कोसिस करीं।",
    Language.MARWARI: "माफ करजो, अबार थांरी अरज पूरी कोनी हो सकी। किरपा कर'र पाछो कोसिस करो।",
    Language.CHHATTISGARHI: "माफी देहू, अभी तुंहर अनुरोध पूरा नइ हो सकिस। किरपा करके फेर कोसिस करव।",
    Language.HARYANVI: "माफ करियो, इब्बे थारी अरजी पूरी कोनी हो सकी। किरपा करकै फेर कोसिस करो।",
}


def parse_language(value: Union[str, Language]) -> Language:
    """Accept a language code ("hi") or enum name ("HINDI").

    Raises:
        ValueError: If the value names no portal language
    """
    if isinstance(value, Language):
        return value
    s = (value or "").strip()
    try:
        return Language(s.lower())
    except ValueError:
        pass
    try:
        return Language[s.upper()]
    except KeyError:
        raise ValueError(f"Unsupported language: '{value}'")


def label_for(language: Language) -> str:
    return LANGUAGE_LABELS.get(language, LANGUAGE_LABELS[Language.ENGLISH])


def apology_for(language: Language) -> str:
    return APOLOGY_MESSAGES.get(language, APOLOGY_MESSAGES[Language.ENGLISH])
