from models import ProductDetails, Script

SUGGEST_PROMPT_TEMPLATE = """
Analyze the attached product images for a product named '{product_name}'.
1. Identify the specific product category.
2. Identify the primary use cases.
3. Based on this category, search and identify the top 3-4 most common and effective types of
   video advertisements used by competitors (e.g. 'Problem-Solution Ad', 'Customer Testimonial Style',
   'Aesthetic Showcase', 'Unboxing & First Impression').
Return these as concise, actionable suggestions for a user.
""".strip()

SCRIPT_PROMPT_TEMPLATE = """
Act as an expert marketing copywriter. Create a short, compelling 30-second video script for a
product named '{product_name}'.
The video format is a '{category}' with a '{style}' tone.
The user's core idea is: '{video_idea}'.
Base the script on the visual information from the provided product images. Structure the script
into 3 distinct scenes with visual cues and a voiceover for each.
""".strip()

VIDEO_PROMPT_TEMPLATE = """
Using the attached seed image, create a promotional video for a product named "{product_name}".
The video should follow this script:
{script_text}
The overall aesthetic should be '{style}'.
This is a '{category}' video. Make it engaging and professional.
""".strip()


def build_suggest_prompt(product_name: str) -> str:
    return SUGGEST_PROMPT_TEMPLATE.format(product_name=product_name)


def build_script_prompt(details: ProductDetails) -> str:
    return SCRIPT_PROMPT_TEMPLATE.format(
        product_name=details.product_name,
        category=details.selected_category,
        style=details.style.value,
        video_idea=details.video_idea,
    )


def build_video_prompt(script: Script, details: ProductDetails) -> str:
    return VIDEO_PROMPT_TEMPLATE.format(
        product_name=details.product_name,
        script_text=script.as_prompt_text(),
        style=details.style.value,
        category=details.selected_category,
    )
